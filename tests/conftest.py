"""Shared fixtures: a scripted stand-in for requests.Session and portal pages."""

from collections.abc import Callable

import pytest
import requests
from requests.cookies import RequestsCookieJar
from requests.structures import CaseInsensitiveDict

from src.campusnet.config import CampusNetConfig
from src.campusnet.models import Credentials, MonthCalendar, MonthKey, Session
from src.campusnet.utils import (
    ACCESS_DENIED_MARKER,
    INCORRECT_LOGIN_MARKER,
    NO_EVENTS_MARKER,
)

BASE_URL = "https://portal.example.edu"
SCRIPT_URL = f"{BASE_URL}/scripts/mgrqispi.dll"


def make_response(
    body: bytes | str = b"",
    *,
    url: str = SCRIPT_URL,
    status: int = 200,
    headers: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.url = url
    response.headers = CaseInsensitiveDict(headers or {})
    for name, value in (cookies or {}).items():
        response.cookies.set(name, value, domain="portal.example.edu", path="/")
    return response


class FakeHttp:
    """Serves queued responses per (method, url) and records every call.

    Like a real requests.Session, cookies set by a response land in the
    client's jar.
    """

    def __init__(self, routes: dict[tuple[str, str], list] | None = None) -> None:
        self.routes = {key: list(value) for key, value in (routes or {}).items()}
        self.calls: list[dict] = []
        self.headers: dict[str, str] = {}
        self.cookies = RequestsCookieJar()
        self.closed = False

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        queue = self.routes.get((method, url))
        if not queue:
            raise AssertionError(f"unexpected request {method} {url}")
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        self.cookies.update(outcome.cookies)
        return outcome

    def __enter__(self) -> "FakeHttp":
        return self

    def __exit__(self, *exc) -> None:
        self.closed = True


@pytest.fixture
def config() -> CampusNetConfig:
    return CampusNetConfig(
        _env_file=None,
        tucan_url=BASE_URL,
        tucan_username="student",
        tucan_password="hunter2",
        request_timeout_seconds=5,
        fetch_workers=3,
        auth_retry_attempts=2,
        auth_retry_wait_seconds=0,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="student", password="hunter2")


@pytest.fixture
def session() -> Session:
    jar = RequestsCookieJar()
    jar.set("cnsc", "COOKIE123", domain="portal.example.edu", path="/")
    return Session(id="271828182845904", cookies=jar)


@pytest.fixture
def http_factory() -> Callable[..., Callable[[], FakeHttp]]:
    """Build a factory returning the given FakeHttp instances in order."""

    def build(*clients: FakeHttp) -> Callable[[], FakeHttp]:
        pending = list(clients)

        def factory() -> FakeHttp:
            return pending.pop(0)

        return factory

    return build


def ics(*summaries: str) -> str:
    """Small single-file export with one VEVENT per summary."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//CampusNet//DE"]
    for summary in summaries:
        lines += ["BEGIN:VEVENT", f"SUMMARY:{summary}", "END:VEVENT"]
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def month_calendar(year: int, month: int, *summaries: str) -> MonthCalendar:
    key = MonthKey(year=year, month=month)
    return MonthCalendar(month=key, text=ics(*(summaries or (f"Lecture {key}",))))


LOGIN_FAILED_PAGE = f"<html><body><div>{INCORRECT_LOGIN_MARKER}</div></body></html>"
ACCESS_DENIED_PAGE = f'<html>{ACCESS_DENIED_MARKER}<p>Zugang verweigert</p></body></html>'
NO_EVENTS_PAGE = f"<html><body><table><tr>{NO_EVENTS_MARKER}</tr></table></body></html>"
