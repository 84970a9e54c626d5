"""One fetch pass: login, export every month of the window, update the store."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

from src.campusnet.config import CampusNetConfig
from src.campusnet.errors import FetchError, NoEvents
from src.campusnet.logging import get_logger
from src.campusnet.models import (
    Credentials,
    MonthCalendar,
    MonthKey,
    PassReport,
    Session,
    fetch_window,
)
from src.campusnet.pages.export import MonthExporter
from src.campusnet.session import SessionAuthenticator
from src.campusnet.store import CalendarStore

log = get_logger(__name__)


def fetch_months(
    exporter: MonthExporter,
    session: Session,
    months: list[MonthKey],
    *,
    workers: int = 4,
) -> tuple[dict[MonthKey, MonthCalendar], PassReport]:
    """Export every month concurrently, isolating per-month failures.

    Args:
        exporter: Month exporter to use.
        session: Authenticated session shared read-only by all workers.
        months: Months to export.
        workers: Thread pool size.

    Returns:
        (fetched calendars by month, report of what happened to each month)
    """
    report = PassReport(months=months)
    fetched: dict[MonthKey, MonthCalendar] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="export") as pool:
        futures = {month: pool.submit(exporter.export_month, session, month) for month in months}

    for month, future in futures.items():
        try:
            calendar = future.result()
        except NoEvents:
            log.info("month_empty", month=str(month))
            report.empty.append(month)
            continue
        except FetchError as e:
            log.warning(
                "month_failed",
                month=str(month),
                error=str(e),
                type=type(e).__name__,
            )
            report.failed[str(month)] = f"{type(e).__name__}: {e}"
            continue

        log.info("month_fetched", month=str(month), events=calendar.event_count)
        fetched[month] = calendar
        report.fetched.append(month)

    return fetched, report


def run_pass(
    config: CampusNetConfig,
    store: CalendarStore,
    credentials: Credentials,
    *,
    today: date | None = None,
    authenticator: SessionAuthenticator | None = None,
    exporter: MonthExporter | None = None,
) -> PassReport:
    """Run one complete fetch pass and feed its results into the store.

    Args:
        config: Bridge configuration.
        store: Store receiving the fetched months.
        credentials: Portal credentials.
        today: Reference date for the month window (default: today).
        authenticator: Override for tests.
        exporter: Override for tests.

    Returns:
        PassReport for this pass.

    Raises:
        AuthError: Login failed; nothing was fetched and the store is unchanged.
    """
    authenticator = authenticator or SessionAuthenticator(config)
    exporter = exporter or MonthExporter(config)
    months = fetch_window(
        today or date.today(),
        months_before=config.months_before,
        months_after=config.months_after,
    )

    log.info("pass_started", first=str(months[0]), last=str(months[-1]), months=len(months))

    session = authenticator.authenticate(credentials)
    fetched, report = fetch_months(
        exporter, session, months, workers=config.fetch_workers
    )
    report.added = store.refresh(fetched)

    log.info(
        "pass_finished",
        fetched=report.fetched_count,
        empty=len(report.empty),
        failed=len(report.failed),
        added=len(report.added),
        events=sum(calendar.event_count for calendar in fetched.values()),
    )
    return report
