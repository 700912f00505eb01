"""Exceptions raised while authenticating against and fetching from SimplyOrg."""
from typing import Optional


class SyncError(Exception):
    """Base class for failures that abort a whole sync pass."""


class AuthenticationError(SyncError):
    """Session handshake failed."""


class MissingCredentialsError(AuthenticationError):
    """Base URL, email or password is not configured."""


class AuthConnectionError(AuthenticationError):
    """Transport failure while talking to the login endpoints."""


class TokenExtractionError(AuthenticationError):
    """The landing page carried no CSRF meta tag."""


class CookiesMissingError(AuthenticationError):
    """The landing page set no cookies."""


class LoginRejectedError(AuthenticationError):
    """Login answered with a status other than 200/204."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(
            message or f"Login to SimplyOrg failed with status code: {status}"
        )


class AuthCookiesMissingError(AuthenticationError):
    """The login response set no cookies."""


class FetchError(SyncError):
    """Calendar data request failed."""


class TransportError(FetchError):
    """Network-level failure during the calendar request."""


class UnexpectedStatusError(FetchError):
    """Calendar endpoint answered with a non-200 status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(
            message
            or f"Failed to fetch calendar events. Status code: {status_code}"
        )


class DecodeError(FetchError):
    """Calendar payload was not well-formed JSON."""
