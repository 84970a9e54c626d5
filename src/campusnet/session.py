"""Portal login and session extraction.

SessionAuthenticator posts the credentials to the portal's entry script and
walks the response through the portal's login quirks (error marker, session
cookie, refresh header, session id element) until it holds a usable Session.
No retries happen here; every failure is terminal for this attempt and the
caller decides whether to try the whole pass again later.
"""

from collections.abc import Callable

import requests

from src.campusnet.config import CampusNetConfig
from src.campusnet.errors import (
    InvalidCredentials,
    NoSessionCookie,
    NoSessionID,
    PortalUnavailable,
    UnexpectedRedirect,
)
from src.campusnet.logging import get_logger
from src.campusnet.models import Credentials, Session
from src.campusnet.utils import (
    find_session_id,
    is_incorrect_login,
    parse_refresh_header,
    resolve_url,
    response_text,
)

logger = get_logger(__name__)

SESSION_COOKIE = "cnsc"

# Fixed LOGINCHECK fields expected by the CampusNet entry script
LOGIN_FORM: dict[str, str] = {
    "APPNAME": "CampusNet",
    "PRGNAME": "LOGINCHECK",
    "ARGUMENTS": "clino,usrname,pass,menuno,menu_type,browser,platform",
    "clino": "000000000000001",
    "menuno": "000000",
    "menu_type": "classic",
}


class SessionAuthenticator:
    """Logs into the portal and produces a Session.

    Each call to authenticate() starts from a fresh HTTP client and cookie
    jar, so a new login always replaces the previous session entirely.
    """

    def __init__(
        self,
        config: CampusNetConfig,
        http_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        """Initialize SessionAuthenticator.

        Args:
            config: Bridge configuration (portal URL, timeout, user agent).
            http_factory: Builds the HTTP client whose cookie jar becomes the
                session's cookie store.
        """
        self.config = config
        self.http_factory = http_factory

    def authenticate(self, credentials: Credentials) -> Session:
        """Log in and return the authenticated session.

        Args:
            credentials: Portal username and password.

        Returns:
            Session holding the session id and the login cookie jar.

        Raises:
            InvalidCredentials: The portal rejected the credentials.
            NoSessionCookie: The login response set no session cookie.
            UnexpectedRedirect: The login ended on another URL.
            NoSessionID: The post-login page has no session id element.
            PortalUnavailable: A request failed or timed out.
        """
        script_url = self.config.script_url
        logger.info("authentication_started", url=script_url)

        with self.http_factory() as http:
            http.headers.update({"User-Agent": self.config.user_agent})
            body = self._login(http, script_url, credentials)

        session_id = find_session_id(body)
        if not session_id:
            logger.error("authentication_failed", reason="no_session_id")
            raise NoSessionID("no session ID found in response")

        logger.info("authentication_succeeded")
        # The jar outlives the closed client; exporters copy it per request
        return Session(id=session_id, cookies=http.cookies)

    def _login(
        self, http: requests.Session, script_url: str, credentials: Credentials
    ) -> str:
        """Submit the login form and return the body of the post-login page."""
        form = {
            "usrname": credentials.username,
            "pass": credentials.password.get_secret_value(),
            **LOGIN_FORM,
        }
        response = self._send(http, "POST", script_url, data=form)
        body = response_text(response)

        if is_incorrect_login(body):
            logger.error("authentication_failed", reason="incorrect_credentials")
            raise InvalidCredentials("incorrect username or password")

        if response.cookies.get(SESSION_COOKIE) is None:
            logger.error(
                "authentication_failed",
                reason="no_session_cookie",
                response_url=response.url,
            )
            raise NoSessionCookie(
                f"no session cookie received (response URL: {response.url})"
            )

        if response.url != script_url:
            logger.error(
                "authentication_failed",
                reason="unexpected_redirect",
                response_url=response.url,
            )
            raise UnexpectedRedirect(response.url)

        refresh = response.headers.get("Refresh")
        if refresh:
            target = parse_refresh_header(refresh)
            if target is not None:
                redirect_url = resolve_url(self.config.tucan_url, target)
                logger.debug("following_refresh", url=redirect_url)
                response = self._send(http, "GET", redirect_url)
                body = response_text(response)

        return body

    def _send(
        self, http: requests.Session, method: str, url: str, **kwargs
    ) -> requests.Response:
        """Issue one login request, mapping transport failures to PortalUnavailable."""
        try:
            response = http.request(
                method, url, timeout=self.config.request_timeout_seconds, **kwargs
            )
            response.raise_for_status()
        except requests.Timeout as e:
            logger.warning("authentication_timeout", url=url, error=str(e))
            raise PortalUnavailable(f"login request timed out: {e}") from e
        except requests.RequestException as e:
            logger.error(
                "authentication_error", url=url, error=str(e), type=type(e).__name__
            )
            raise PortalUnavailable(f"login request failed: {e}") from e
        return response
