"""CampusNet calendar bridge.

Logs into the TUCaN / CampusNet portal, exports the personal schedule one
month at a time and serves the merged months as a single .ics feed.
"""

from src.campusnet.models import Credentials, MonthCalendar, MonthKey, Session
from src.campusnet.pages.export import MonthExporter
from src.campusnet.session import SessionAuthenticator
from src.campusnet.store import CalendarStore, merge_all, refresh_cache

__all__ = [
    "SessionAuthenticator",
    "MonthExporter",
    "CalendarStore",
    "merge_all",
    "refresh_cache",
    "Credentials",
    "MonthCalendar",
    "MonthKey",
    "Session",
]
