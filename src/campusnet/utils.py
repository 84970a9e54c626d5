"""Shared helpers for reading portal responses.

The portal's HTML is boilerplate generated by the same templates on every
request, so the scanners below only look for the first element matching a
predicate in the token stream instead of building a DOM.
"""

from html.parser import HTMLParser
from urllib.parse import urljoin

import requests

BOM = "\ufeff"

# Body markers, compared against the UTF-8 decoded response body
INCORRECT_LOGIN_MARKER = (
    "<p>Bitte versuchen Sie es erneut. Überprüfen Sie ggf. Ihre Zugangsdaten.</p>"
)
ACCESS_DENIED_MARKER = '<body class="access_denied">'
NO_EVENTS_MARKER = (
    '<td class="tbdata_error">Die Kalenderdatei konnte nicht erstellt werden, '
    "weil im gewählten Zeitraum keine Termine vorhanden sind.</td>"
)

SESSION_ID_ELEMENT_ID = "sessionId"
FILE_TRANSFER_SCRIPT = "filetransfer.exe"


def response_text(response: requests.Response) -> str:
    """Decode a portal response body as UTF-8, replacing invalid bytes.

    The portal does not reliably declare a charset, and requests would fall
    back to ISO-8859-1 for text/html, breaking the umlauts in the markers.
    """
    return response.content.decode("utf-8", errors="replace")


def is_incorrect_login(body: str) -> bool:
    return INCORRECT_LOGIN_MARKER in body


def is_access_denied(body: str) -> bool:
    return ACCESS_DENIED_MARKER in body


def is_no_events(body: str) -> bool:
    return NO_EVENTS_MARKER in body


def resolve_url(base_url: str, target: str) -> str:
    """Resolve a possibly relative portal link against the base URL."""
    return urljoin(base_url.rstrip("/") + "/", target.strip())


def parse_refresh_header(value: str) -> str | None:
    """Extract the target URL from a `Refresh: <delay>; URL=<target>` header.

    Returns:
        The raw (possibly relative) target, or None if the header has none.
    """
    _, sep, rest = value.partition(";")
    if not sep:
        return None
    target = rest.strip()
    if target[:4].lower() == "url=":
        target = target[4:].strip()
    target = target.strip("'\"")
    return target or None


def decode_utf16le(data: bytes) -> str:
    """Decode a UTF-16LE export, ignoring a leading byte-order mark.

    Raises:
        UnicodeDecodeError: If the bytes are not valid UTF-16LE (odd length,
            unpaired surrogates).
    """
    text = data.decode("utf-16-le")
    if text.startswith(BOM):
        text = text[1:]
    return text


class _FirstMatchScanner(HTMLParser):
    """Token-stream scanner that stops caring once it has a result."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.result: str | None = None

    @property
    def done(self) -> bool:
        return self.result is not None

    def scan(self, html: str) -> str | None:
        self.feed(html)
        self.close()
        return self.result


class _SessionIdScanner(_FirstMatchScanner):
    """Reads the first <div id="sessionId">; an empty one counts as no id."""

    def __init__(self) -> None:
        super().__init__()
        self._inside = False
        self._finished = False
        self._depth = 0
        self._parts: list[str] = []

    @property
    def done(self) -> bool:
        return self._finished

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self.done:
            return
        if self._inside:
            if tag == "div":
                self._depth += 1
            return
        if tag == "div" and ("id", SESSION_ID_ELEMENT_ID) in attrs:
            self._inside = True
            self._depth = 0
            self._parts = []

    def handle_endtag(self, tag: str) -> None:
        if not self._inside or tag != "div":
            return
        if self._depth:
            self._depth -= 1
            return
        self._finish()

    def handle_data(self, data: str) -> None:
        if self._inside and not self.done:
            self._parts.append(data)

    def close(self) -> None:
        super().close()
        # Unterminated <div id="sessionId"> at end of document
        if self._inside and not self.done:
            self._finish()

    def _finish(self) -> None:
        self._inside = False
        self._finished = True
        self.result = "".join(self._parts).strip() or None


class _LinkScanner(_FirstMatchScanner):
    def __init__(self, needle: str) -> None:
        super().__init__()
        self.needle = needle

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self.done or tag != "a":
            return
        for key, value in attrs:
            if key == "href" and value and self.needle in value:
                self.result = value
                return


def find_session_id(html: str) -> str | None:
    """Return the text of the first `<div id="sessionId">`, or None."""
    return _SessionIdScanner().scan(html)


def find_download_link(html: str, base_url: str) -> str | None:
    """Return the absolute URL of the first file transfer anchor, or None.

    Args:
        html: Export page body.
        base_url: Portal base URL for relative hrefs.
    """
    href = _LinkScanner(FILE_TRANSFER_SCRIPT).scan(html)
    if href is None:
        return None
    return resolve_url(base_url, href)


def count_events(ics: str) -> int:
    """Count VEVENT components by their BEGIN lines."""
    return sum(1 for line in ics.splitlines() if line.startswith("BEGIN:VEVENT"))
