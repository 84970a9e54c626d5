"""Error hierarchy for portal authentication and month export failures.

Errors are classified twice: by stage (AuthError aborts a whole fetch pass,
FetchError only drops one month) and by retry behaviour (TransientError may
succeed on a later attempt, PermanentError will not). The updater uses the
second classification with tenacity:

    Retrying(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.campusnet.models import MonthKey


class CampusNetError(Exception):
    """Base exception for all portal errors."""

    pass


class TransientError(CampusNetError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, portal maintenance redirects.
    """

    pass


class PermanentError(CampusNetError):
    """Failure that won't succeed on retry.

    Examples: wrong credentials, portal markup that no longer matches.
    """

    pass


# --- Authentication (fatal to the whole pass) ---


class AuthError(CampusNetError):
    """Login failed - no session, so no month can be fetched in this pass."""

    pass


class InvalidCredentials(AuthError, PermanentError):
    """The portal rejected the username/password pair."""

    pass


class NoSessionCookie(AuthError, PermanentError):
    """The login response did not set the session cookie."""

    pass


class UnexpectedRedirect(AuthError, TransientError):
    """The login landed on an unexpected URL, the portal may be down."""

    def __init__(self, url: str) -> None:
        super().__init__(f"unexpected redirect to {url}, service may be down")
        self.url = url


class NoSessionID(AuthError, PermanentError):
    """No session id element was found in the post-login page."""

    pass


class PortalUnavailable(AuthError, TransientError):
    """Network error or timeout while talking to the login script."""

    pass


# --- Month export (isolated to one month) ---


class FetchError(CampusNetError):
    """Exporting a single month failed. Other months are unaffected."""

    def __init__(self, month: "MonthKey", message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.month = month


class AccessDenied(FetchError, PermanentError):
    """The portal answered with its access denied page."""

    pass


class NoEvents(FetchError):
    """The portal has no events in the requested month.

    Expected for empty months - not a fault.
    """

    pass


class NoDownloadLink(FetchError, PermanentError):
    """The export page contained no file transfer link."""

    pass


class DecodeError(FetchError, PermanentError):
    """The downloaded file was not valid UTF-16LE."""

    pass


class NetworkError(FetchError, TransientError):
    """Request failed, timed out, or returned a non-2xx status."""

    pass
