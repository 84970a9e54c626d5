import threading
from unittest.mock import MagicMock

import pytest

from src.campusnet.errors import InvalidCredentials, PortalUnavailable, UnexpectedRedirect
from src.campusnet.models import MonthCalendar, MonthKey, PassReport
from src.campusnet.store import CalendarStore
from src.campusnet.updater import CalendarUpdater
from tests.conftest import ics

OCT = MonthKey(year=2026, month=10)


@pytest.fixture
def store() -> CalendarStore:
    return CalendarStore()


def successful_pass(config, store, credentials):
    added = store.refresh({OCT: MonthCalendar(month=OCT, text=ics("Analysis I"))})
    return PassReport(months=[OCT], fetched=[OCT], added=added)


def test_update_once_writes_calendar_file(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    updater = CalendarUpdater(config, store, credentials, pass_runner=successful_pass)

    report = updater.update_once()

    assert report.fetched_count == 1
    assert (tmp_path / "tucan.ics").read_bytes() == store.merged.encode("utf-8")


def test_transient_login_failure_retries_pass(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    runner = MagicMock(side_effect=[PortalUnavailable("timed out"), successful_pass(config, store, credentials)])
    updater = CalendarUpdater(config, store, credentials, pass_runner=runner)

    report = updater.update_once()

    assert report is not None
    assert runner.call_count == 2


def test_transient_failures_give_up_after_configured_attempts(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    runner = MagicMock(side_effect=UnexpectedRedirect("https://portal.example.edu/wartung"))
    updater = CalendarUpdater(config, store, credentials, pass_runner=runner)

    assert updater.update_once() is None
    assert runner.call_count == config.auth_retry_attempts
    assert not (tmp_path / "tucan.ics").exists()


def test_invalid_credentials_are_not_retried(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    runner = MagicMock(side_effect=InvalidCredentials("incorrect username or password"))
    updater = CalendarUpdater(config, store, credentials, pass_runner=runner)

    assert updater.update_once() is None
    assert runner.call_count == 1


def test_failed_pass_keeps_previous_file(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    runner = MagicMock(
        side_effect=[successful_pass(config, store, credentials), InvalidCredentials("nope")]
    )
    updater = CalendarUpdater(config, store, credentials, pass_runner=runner)

    updater.update_once()
    written = (tmp_path / "tucan.ics").read_bytes()
    updater.update_once()

    assert (tmp_path / "tucan.ics").read_bytes() == written


def test_run_loop_stops(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    config.update_interval_minutes = 60
    runner = MagicMock(side_effect=lambda *args: successful_pass(*args))
    updater = CalendarUpdater(config, store, credentials, pass_runner=runner)

    thread = updater.start()
    updater.stop(timeout=5)

    assert not thread.is_alive()
    assert runner.call_count <= 1


def test_unwritable_calendar_file_does_not_abort_update(config, store, credentials, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    config.ical_file = str(blocker / "tucan.ics")
    updater = CalendarUpdater(config, store, credentials, pass_runner=successful_pass)

    report = updater.update_once()

    assert report.fetched_count == 1
    assert store.merged is not None


def test_run_loop_survives_failing_pass(config, store, credentials, tmp_path):
    config.ical_file = str(tmp_path / "tucan.ics")
    config.update_interval_minutes = 0.0001
    second_pass = threading.Event()
    calls = []

    def flaky_pass(*args):
        calls.append(args)
        if len(calls) == 1:
            raise RuntimeError("unexpected portal markup")
        second_pass.set()
        return successful_pass(*args)

    updater = CalendarUpdater(config, store, credentials, pass_runner=flaky_pass)

    thread = updater.start()
    assert second_pass.wait(timeout=5)
    assert thread.is_alive()
    updater.stop(timeout=5)

    assert not thread.is_alive()
    assert store.merged is not None


def test_run_loop_survives_unwritable_calendar_file(config, store, credentials, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    config.ical_file = str(blocker / "tucan.ics")
    config.update_interval_minutes = 0.0001
    passes = threading.Semaphore(0)

    def counting_pass(*args):
        passes.release()
        return successful_pass(*args)

    updater = CalendarUpdater(config, store, credentials, pass_runner=counting_pass)

    thread = updater.start()
    assert passes.acquire(timeout=5)
    assert passes.acquire(timeout=5)
    assert thread.is_alive()
    updater.stop(timeout=5)
