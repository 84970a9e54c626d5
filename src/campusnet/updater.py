"""Periodic calendar updater.

Runs one fetch pass per interval in a background thread and writes the
merged calendar to disk after every pass that produced data. A pass whose
login fails transiently (portal down, timeout) is retried a few times with
tenacity; permanent login failures wait for the next tick.
"""

import threading
from collections.abc import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.campusnet.config import CampusNetConfig
from src.campusnet.errors import AuthError, TransientError
from src.campusnet.logging import get_logger
from src.campusnet.models import Credentials, PassReport
from src.campusnet.pipeline import run_pass
from src.campusnet.store import CalendarStore

logger = get_logger(__name__)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "pass_retry_scheduled",
        attempt=state.attempt_number,
        error=str(error),
        wait_seconds=state.next_action.sleep if state.next_action else None,
    )


class CalendarUpdater:
    """Owns the refresh schedule for one CalendarStore."""

    def __init__(
        self,
        config: CampusNetConfig,
        store: CalendarStore,
        credentials: Credentials,
        *,
        pass_runner: Callable[..., PassReport] = run_pass,
    ) -> None:
        self.config = config
        self.store = store
        self.credentials = credentials
        self.pass_runner = pass_runner
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def update_once(self) -> PassReport | None:
        """Run one pass (with transient-login retries) and persist the result.

        Returns:
            The pass report, or None if login failed for good.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.config.auth_retry_attempts),
            wait=wait_fixed(self.config.auth_retry_wait_seconds),
            retry=retry_if_exception_type(TransientError),
            before_sleep=_log_retry,
            sleep=self._stop.wait,
            reraise=True,
        )
        try:
            report = retrying(self.pass_runner, self.config, self.store, self.credentials)
        except AuthError as e:
            logger.error("pass_aborted", error=str(e), type=type(e).__name__)
            return None

        # Rewrites the previous artifact unchanged when the pass added nothing
        try:
            self.store.save(self.config.ical_file)
        except OSError as e:
            logger.error("calendar_save_failed", path=self.config.ical_file, error=str(e))
        return report

    def run(self) -> None:
        """Update immediately, then once per interval until stop() is called."""
        interval = self.config.update_interval_minutes * 60
        while not self._stop.is_set():
            logger.info("calendar_update_started")
            try:
                self.update_once()
            except Exception:
                # The feed keeps serving the last good calendar
                logger.exception("calendar_update_failed")
            self._stop.wait(interval)
        logger.info("calendar_updater_stopped")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="calendar-updater", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
