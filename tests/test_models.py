from datetime import date

import pytest
from pydantic import ValidationError

from src.campusnet.models import Credentials, MonthKey, fetch_window
from tests.conftest import month_calendar


class TestMonthKey:
    def test_token_uses_portal_format(self):
        assert MonthKey(year=2026, month=3).token == "Y2026M03"
        assert MonthKey(year=2026, month=11).token == "Y2026M11"

    def test_str(self):
        assert str(MonthKey(year=2026, month=3)) == "2026-03"

    @pytest.mark.parametrize(
        ("start", "offset", "expected"),
        [
            ((2026, 10), 0, (2026, 10)),
            ((2026, 10), 2, (2026, 12)),
            ((2026, 10), 3, (2027, 1)),
            ((2026, 1), -1, (2025, 12)),
            ((2026, 2), -14, (2024, 12)),
        ],
    )
    def test_shift(self, start, offset, expected):
        shifted = MonthKey(year=start[0], month=start[1]).shift(offset)
        assert (shifted.year, shifted.month) == expected

    def test_is_hashable_and_ordered(self):
        a = MonthKey(year=2026, month=12)
        b = MonthKey(year=2027, month=1)
        assert {a: 1}[MonthKey(year=2026, month=12)] == 1
        assert sorted([b, a]) == [a, b]

    def test_rejects_invalid_month(self):
        with pytest.raises(ValidationError):
            MonthKey(year=2026, month=13)


class TestFetchWindow:
    def test_default_window_spans_eleven_months(self):
        window = fetch_window(date(2026, 10, 18))
        assert len(window) == 11
        assert str(window[0]) == "2026-07"
        assert str(window[-1]) == "2027-05"

    def test_window_is_consecutive_across_year_boundary(self):
        window = fetch_window(date(2026, 1, 31))
        assert [str(m) for m in window[:4]] == ["2025-10", "2025-11", "2025-12", "2026-01"]
        assert all(b == a.shift(1) for a, b in zip(window, window[1:]))

    def test_window_slides_with_now(self):
        assert fetch_window(date(2026, 11, 1))[0] == fetch_window(date(2026, 10, 1))[1]

    def test_custom_size(self):
        assert [str(m) for m in fetch_window(date(2026, 5, 5), 0, 1)] == ["2026-05", "2026-06"]


def test_password_is_hidden():
    creds = Credentials(username="student", password="hunter2")
    assert "hunter2" not in repr(creds)
    assert creds.password.get_secret_value() == "hunter2"


def test_month_calendar_counts_events():
    assert month_calendar(2026, 10, "A", "B").event_count == 2
