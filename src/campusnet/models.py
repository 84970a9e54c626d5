"""Pydantic models for sessions, months and calendar fragments.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from requests.cookies import RequestsCookieJar

from src.campusnet.utils import count_events


class Credentials(BaseModel):
    """Portal username/password pair. The password never appears in repr or logs."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr


class Session(BaseModel):
    """An authenticated portal session.

    The cookie jar is read-only once authentication has completed; exporters
    copy it into their own HTTP client instead of sharing the jar.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(repr=False)  # value of <div id="sessionId">, posted as sessionno
    cookies: RequestsCookieJar = Field(repr=False)  # holds the cnsc cookie


class MonthKey(BaseModel):
    """A calendar month, the unit of export and of caching."""

    model_config = ConfigDict(frozen=True)

    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)

    @classmethod
    def from_date(cls, value: date) -> "MonthKey":
        return cls(year=value.year, month=value.month)

    def shift(self, months: int) -> "MonthKey":
        """Return the month `months` months away (negative goes back)."""
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(year=index // 12, month=index % 12 + 1)

    @property
    def token(self) -> str:
        """Month in the portal's export format, e.g. "Y2026M03"."""
        return f"Y{self.year:04d}M{self.month:02d}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __lt__(self, other: "MonthKey") -> bool:
        return (self.year, self.month) < (other.year, other.month)


class MonthCalendar(BaseModel):
    """Decoded .ics text exported for one month."""

    model_config = ConfigDict(frozen=True)

    month: MonthKey
    text: str = Field(repr=False)

    @property
    def event_count(self) -> int:
        return count_events(self.text)


class PassReport(BaseModel):
    """Outcome of one fetch pass, for logging and the caller."""

    months: list[MonthKey] = Field(default_factory=list)  # requested window
    fetched: list[MonthKey] = Field(default_factory=list)
    empty: list[MonthKey] = Field(default_factory=list)  # portal reported no events
    failed: dict[str, str] = Field(default_factory=dict)  # "YYYY-MM" -> error
    added: list[MonthKey] = Field(default_factory=list)  # newly inserted into cache

    @property
    def fetched_count(self) -> int:
        return len(self.fetched)


def fetch_window(
    now: date, months_before: int = 3, months_after: int = 7
) -> list[MonthKey]:
    """Months from `months_before` before `now` through `months_after` after.

    Args:
        now: Reference date, normally today.
        months_before: Past months to include.
        months_after: Future months to include.

    Returns:
        Consecutive MonthKeys in ascending order (11 with the defaults).
    """
    current = MonthKey.from_date(now)
    return [current.shift(offset) for offset in range(-months_before, months_after + 1)]
