"""MonthExporter - exports one month of the personal schedule as .ics.

The portal's scheduler export is a two-step workflow on the entry script:

  POST mgrqispi.dll  PRGNAME=SCHEDULER_EXPORT_START, date=month=Y2026M10
    -> HTML page with either
         body.access_denied                (session expired / blocked)
         td.tbdata_error "... keine Termine ..."  (empty month)
         <a href="/scripts/filetransfer.exe?...">  (the generated file)
  GET  filetransfer.exe?...
    -> .ics bytes in UTF-16LE, usually with a BOM

Every failure raises a FetchError subclass carrying the month, so the
pipeline can skip that month and carry on with the others.
"""

from collections.abc import Callable

import requests

from src.campusnet.config import CampusNetConfig
from src.campusnet.errors import (
    AccessDenied,
    DecodeError,
    NetworkError,
    NoDownloadLink,
    NoEvents,
)
from src.campusnet.logging import get_logger
from src.campusnet.models import MonthCalendar, MonthKey, Session
from src.campusnet.utils import (
    decode_utf16le,
    find_download_link,
    is_access_denied,
    is_no_events,
    response_text,
)

log = get_logger(__name__)

EXPORT_PROGRAM = "SCHEDULER_EXPORT_START"
EXPORT_MENU_ID = "000272"


def export_form(session: Session, month: MonthKey) -> dict[str, str]:
    """Build the SCHEDULER_EXPORT_START form for one month."""
    return {
        "APPNAME": "CampusNet",
        "PRGNAME": EXPORT_PROGRAM,
        "ARGUMENTS": "sessionno,menuid,date",
        "sessionno": session.id,
        "menuid": EXPORT_MENU_ID,
        "date": month.token,
        "month": month.token,
        "week": "0",
    }


class MonthExporter:
    """Drives the export workflow for single months of an authenticated session.

    Safe to call from several threads at once: each call works on its own
    HTTP client seeded with a copy of the session cookies.
    """

    def __init__(
        self,
        config: CampusNetConfig,
        http_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.config = config
        self.http_factory = http_factory

    def export_month(self, session: Session, month: MonthKey) -> MonthCalendar:
        """Export and download the calendar file for one month.

        Args:
            session: Authenticated portal session.
            month: Month to export.

        Returns:
            MonthCalendar with the decoded .ics text.

        Raises:
            AccessDenied: The portal refused the export request.
            NoEvents: The month has no events; nothing was downloaded.
            NoDownloadLink: The export page held no file transfer link.
            NetworkError: A request failed, timed out or returned an error status.
            DecodeError: The downloaded file is not valid UTF-16LE.
        """
        with self.http_factory() as http:
            http.headers.update({"User-Agent": self.config.user_agent})
            http.cookies.update(session.cookies)

            response = self._send(
                http, month, "POST", self.config.script_url, data=export_form(session, month)
            )
            body = response_text(response)

            if is_access_denied(body):
                log.debug(
                    "access_denied_page", month=str(month), status=response.status_code
                )
                raise AccessDenied(month, "access denied")

            if is_no_events(body):
                raise NoEvents(month, "no events in month")

            link = find_download_link(body, self.config.tucan_url)
            if link is None:
                raise NoDownloadLink(month, "no .ics link found")

            download = self._send(http, month, "GET", link)

        try:
            text = decode_utf16le(download.content)
        except UnicodeDecodeError as e:
            raise DecodeError(month, f"error converting UTF-16 to UTF-8: {e}") from e

        calendar = MonthCalendar(month=month, text=text)
        log.debug(
            "month_exported",
            month=str(month),
            bytes=len(download.content),
            events=calendar.event_count,
        )
        return calendar

    def _send(
        self,
        http: requests.Session,
        month: MonthKey,
        method: str,
        url: str,
        **kwargs,
    ) -> requests.Response:
        try:
            response = http.request(
                method, url, timeout=self.config.request_timeout_seconds, **kwargs
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(month, f"{method} {url} failed: {e}") from e
        return response
