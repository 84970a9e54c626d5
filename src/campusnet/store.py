"""Month cache and merged calendar.

CalendarStore is the single owner of the month cache and of the artifact
currently being served. One instance is built at startup and handed to both
the updater (writer) and the HTTP server (reader).

The cache is first-writer-wins: once a month is cached its text stays frozen
until the process restarts, even if a later pass exports it again. A pass
that fails for some months therefore never drops them from the feed.
"""

import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path

from src.campusnet.logging import get_logger
from src.campusnet.models import MonthCalendar, MonthKey

logger = get_logger(__name__)

ENVELOPE_BEGIN = "BEGIN:VCALENDAR"
ENVELOPE_END = "END:VCALENDAR"
LINE_END = "\r\n"


def merge_all(calendars: Iterable[str]) -> str:
    """Concatenate .ics texts under a single VCALENDAR envelope.

    Every line starting an envelope line is dropped from each input; all other
    lines are kept verbatim and in input order. Events are not parsed,
    reordered or deduplicated.

    Args:
        calendars: Raw .ics texts.

    Returns:
        One calendar document with CRLF line endings.
    """
    lines = [ENVELOPE_BEGIN]
    for ics in calendars:
        pieces = ics.split("\n")
        if pieces[-1] == "":
            pieces.pop()
        for piece in pieces:
            # Only LF and CRLF end a line; other separators belong to the value
            line = piece[:-1] if piece.endswith("\r") else piece
            if line.startswith(ENVELOPE_BEGIN) or line.startswith(ENVELOPE_END):
                continue
            lines.append(line)
    lines.append(ENVELOPE_END)
    return LINE_END.join(lines) + LINE_END


def refresh_cache(
    cache: Mapping[MonthKey, MonthCalendar],
    fetched: Mapping[MonthKey, MonthCalendar],
) -> dict[MonthKey, MonthCalendar]:
    """Return a copy of `cache` with every month of `fetched` it lacks.

    Months already in `cache` keep their existing value.
    """
    updated = dict(cache)
    for month, calendar in fetched.items():
        updated.setdefault(month, calendar)
    return updated


class CalendarStore:
    """Thread-safe owner of the month cache and the merged calendar."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cache: dict[MonthKey, MonthCalendar] = {}
        self._merged: str | None = None

    @property
    def merged(self) -> str | None:
        """The calendar currently served, or None before the first successful pass."""
        with self._lock:
            return self._merged

    def months(self) -> list[MonthKey]:
        with self._lock:
            return sorted(self._cache)

    def get(self, month: MonthKey) -> MonthCalendar | None:
        with self._lock:
            return self._cache.get(month)

    def refresh(self, fetched: Mapping[MonthKey, MonthCalendar]) -> list[MonthKey]:
        """Insert newly fetched months and rebuild the merged calendar.

        The whole update runs under one lock acquisition. An empty `fetched`
        leaves both the cache and the merged calendar untouched.

        Args:
            fetched: Months exported in this pass.

        Returns:
            The months that were added to the cache, in ascending order.
        """
        if not fetched:
            logger.info("store_unchanged", reason="nothing_fetched")
            return []

        with self._lock:
            added = sorted(month for month in fetched if month not in self._cache)
            self._cache = refresh_cache(self._cache, fetched)
            self._merged = merge_all(
                self._cache[month].text for month in sorted(self._cache)
            )
            cached = len(self._cache)

        logger.info(
            "store_refreshed",
            added=[str(month) for month in added],
            kept=len(fetched) - len(added),
            cached=cached,
        )
        return added

    def load(self, path: str | os.PathLike[str]) -> bool:
        """Serve a previously saved calendar until the first pass refreshes it.

        Only the merged text is restored. The month cache stays empty, so the
        first pass that fetches anything replaces the loaded calendar.

        Returns:
            False if `path` does not exist, True otherwise.
        """
        target = Path(path)
        if not target.is_file():
            logger.info("calendar_load_skipped", path=str(target), reason="no_file")
            return False

        with open(target, encoding="utf-8", newline="") as fh:
            text = fh.read()

        with self._lock:
            # A pass that already finished wins over the file on disk
            if self._merged is None:
                self._merged = text

        logger.info("calendar_loaded", path=str(target), bytes=len(text.encode("utf-8")))
        return True

    def save(self, path: str | os.PathLike[str]) -> bool:
        """Write the merged calendar to `path` atomically.

        Returns:
            False if there is nothing to write yet, True otherwise.
        """
        merged = self.merged
        if merged is None:
            logger.info("store_save_skipped", reason="no_calendar_data")
            return False

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(merged)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("calendar_saved", path=str(target), bytes=len(merged.encode("utf-8")))
        return True
