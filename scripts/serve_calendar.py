"""Fetch the TUCaN schedule and serve it as a single .ics feed.

Logs into the portal, exports every month of the window, writes the merged
calendar to ICAL_FILE and serves it over HTTP, refreshing it periodically.

Run with: python scripts/serve_calendar.py
Once:     python scripts/serve_calendar.py --once
Port:     python scripts/serve_calendar.py --port 9090

Required environment (or .env): TUCAN_USERNAME, TUCAN_PASSWORD

Exit codes:
  0 = success (--once: calendar written)
  1 = error (missing credentials, login failed, nothing fetched)
"""

import argparse
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.campusnet.config import get_config  # noqa: E402
from src.campusnet.errors import AuthError  # noqa: E402
from src.campusnet.logging import get_logger, setup_logging  # noqa: E402
from src.campusnet.models import Credentials  # noqa: E402
from src.campusnet.pipeline import run_pass  # noqa: E402
from src.campusnet.server import make_server  # noqa: E402
from src.campusnet.store import CalendarStore  # noqa: E402
from src.campusnet.updater import CalendarUpdater  # noqa: E402

logger = get_logger("serve_calendar")


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Serve the TUCaN schedule as a merged .ics feed.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch once, write the calendar file and exit (no server).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP port (default: PORT from the environment, 8080).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Calendar file path (default: ICAL_FILE from the environment).",
    )
    return parser.parse_args()


def main(args: argparse.Namespace) -> int:
    config = get_config()
    if args.port is not None:
        config.port = args.port
    if args.output is not None:
        config.ical_file = args.output

    setup_logging(json_output=config.log_json, log_level=config.log_level)

    if not config.tucan_username or not config.tucan_password.get_secret_value():
        logger.error("missing_credentials", hint="set TUCAN_USERNAME and TUCAN_PASSWORD")
        return 1

    credentials = Credentials(
        username=config.tucan_username, password=config.tucan_password
    )
    store = CalendarStore()

    if args.once:
        try:
            report = run_pass(config, store, credentials)
        except AuthError as e:
            logger.error("login_failed", error=str(e), type=type(e).__name__)
            return 1
        if not store.save(config.ical_file):
            return 1
        logger.info("done", fetched=report.fetched_count, path=config.ical_file)
        return 0

    # Keep serving the last written calendar across restarts
    store.load(config.ical_file)

    updater = CalendarUpdater(config, store, credentials)
    updater.start()

    server = make_server(config.host, config.port, store)
    logger.info(
        "serving_calendar",
        url=f"http://{config.host}:{config.port}/tucan.ics",
        interval_minutes=config.update_interval_minutes,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutdown_requested")
    finally:
        server.server_close()
        updater.stop(timeout=5)
    return 0


if __name__ == "__main__":
    sys.exit(main(_parse_args()))
