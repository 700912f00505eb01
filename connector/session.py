"""Session handshake for the SimplyOrg admin API."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from connector.exceptions import (
    AuthConnectionError,
    AuthCookiesMissingError,
    CookiesMissingError,
    LoginRejectedError,
    MissingCredentialsError,
    TokenExtractionError,
)

logger = logging.getLogger(__name__)


class AuthState(Enum):
    """Steps of the session handshake."""
    UNAUTHENTICATED = 'unauthenticated'
    TOKEN_OBTAINED = 'token_obtained'
    AUTHENTICATED = 'authenticated'
    FAILED = 'failed'


@dataclass
class AuthSession:
    """Credentials plus the cookies and token derived from them."""
    base_url: str
    email: str
    password: str
    cookies: List[str] = field(default_factory=list)
    xsrf_token: str = ''
    state: AuthState = AuthState.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    def url(self, path: str) -> str:
        """Join a relative API path onto the base URL."""
        return self.base_url.rstrip('/') + '/' + path.lstrip('/')

    def cookie_header(self) -> str:
        """Render the stored cookies as a Cookie request header."""
        pairs = [cookie.split(';', 1)[0].strip() for cookie in self.cookies]
        return '; '.join(pair for pair in pairs if pair)

    def fresh(self) -> 'AuthSession':
        """Return an unauthenticated copy carrying only the credentials."""
        return AuthSession(
            base_url=self.base_url,
            email=self.email,
            password=self.password
        )


def extract_csrf_token(html_content: str) -> Optional[str]:
    """
    Extract the CSRF token from the landing page meta tag.

    Args:
        html_content: HTML of the landing page

    Returns:
        Token string or None if the meta tag is missing or empty
    """
    soup = BeautifulSoup(html_content or '', 'html.parser')
    meta = soup.find('meta', attrs={'name': 'csrf-token'})
    if meta is None:
        return None
    return meta.get('content') or None


def extract_set_cookies(response: requests.Response) -> List[str]:
    """
    Return every Set-Cookie header value of a response.

    requests folds repeated headers into one comma-joined string, so the
    individual values are read from the underlying urllib3 headers.
    """
    raw_headers = getattr(response.raw, 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'getlist'):
        return [value for value in raw_headers.getlist('Set-Cookie') if value]

    value = response.headers.get('Set-Cookie')
    return [value] if value else []


def token_from_first_cookie(cookies: List[str]) -> Optional[str]:
    """
    Take the value portion of the first cookie.

    The login endpoint expects X-CSRF-Token to carry whatever the first
    cookie holds, regardless of that cookie's name.
    """
    if not cookies or not cookies[0]:
        return None
    pair = cookies[0].split(';', 1)[0].split('=', 1)
    if len(pair) != 2:
        return None
    return pair[1]


class SessionManager:
    """Runs the token/cookie/login handshake for an AuthSession."""

    LANDING_PATH = 'de'
    LOGIN_PATH = 'de/login'

    def __init__(self, session: AuthSession, timeout: int = 30):
        """
        Initialize the session manager.

        Args:
            session: Session holding the API credentials
            timeout: HTTP timeout in seconds for each handshake request
        """
        self.session = session
        self.timeout = timeout

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def reset(self) -> AuthSession:
        """Discard cookies and token, keeping the credentials."""
        self.session = self.session.fresh()
        return self.session

    def authenticate(self) -> AuthSession:
        """
        Perform the full authentication flow.

        1. GET the landing page and read the CSRF meta token and cookies
        2. POST the login form with the token and credentials
        3. Keep the authenticated cookies and XSRF token

        Returns:
            The authenticated session

        Raises:
            AuthenticationError: If any step of the handshake fails
        """
        if self.session.state is not AuthState.UNAUTHENTICATED:
            self.reset()

        try:
            self._run_handshake()
        except Exception:
            self.session.state = AuthState.FAILED
            raise

        logger.info("Authentication with SimplyOrg successful")
        return self.session

    def _run_handshake(self) -> None:
        session = self.session

        if not session.base_url or not session.email or not session.password:
            raise MissingCredentialsError(
                "API credentials are not configured"
            )

        logger.info(f"Starting authentication against {session.base_url}")

        try:
            initial_response = requests.get(
                session.url(self.LANDING_PATH),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AuthConnectionError(
                f"Failed to connect to SimplyOrg: {e}"
            ) from e

        logger.debug(
            f"Landing page returned status {initial_response.status_code}"
        )

        csrf_token = extract_csrf_token(initial_response.text)
        if not csrf_token:
            raise TokenExtractionError(
                "Failed to extract CSRF token from SimplyOrg login page"
            )
        session.state = AuthState.TOKEN_OBTAINED

        initial_cookies = extract_set_cookies(initial_response)
        if not initial_cookies:
            raise CookiesMissingError("Failed to retrieve cookies from SimplyOrg")

        session.cookies = initial_cookies
        session.xsrf_token = token_from_first_cookie(initial_cookies) or ''

        try:
            login_response = requests.post(
                session.url(self.LOGIN_PATH),
                data={
                    '_token': csrf_token,
                    'email': session.email,
                    'password': session.password,
                },
                headers={
                    'Content-Type': 'application/x-www-form-urlencoded',
                    'Accept': 'application/json, text/javascript, */*; q=0.01',
                    'X-CSRF-Token': session.xsrf_token,
                    'Cookie': session.cookie_header(),
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AuthConnectionError(f"Login to SimplyOrg failed: {e}") from e

        # SimplyOrg answers a successful login with 204 No Content
        if login_response.status_code not in (200, 204):
            raise LoginRejectedError(login_response.status_code)

        auth_cookies = extract_set_cookies(login_response)
        if not auth_cookies:
            raise AuthCookiesMissingError(
                "Failed to retrieve authentication cookies after login"
            )

        session.cookies = auth_cookies
        refreshed_token = token_from_first_cookie(auth_cookies)
        if refreshed_token:
            session.xsrf_token = refreshed_token

        session.state = AuthState.AUTHENTICATED
