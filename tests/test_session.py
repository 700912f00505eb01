"""Unit tests for the SimplyOrg session handshake."""
from urllib.parse import parse_qs

import pytest
import responses
from requests.exceptions import ConnectionError as RequestsConnectionError

from connector.exceptions import (
    AuthConnectionError,
    AuthCookiesMissingError,
    CookiesMissingError,
    LoginRejectedError,
    MissingCredentialsError,
    TokenExtractionError,
)
from connector.session import (
    AuthSession,
    AuthState,
    SessionManager,
    extract_csrf_token,
    token_from_first_cookie,
)
from conftest import BASE_URL, LANDING_HTML

LANDING_URL = BASE_URL + 'de'
LOGIN_URL = BASE_URL + 'de/login'

LANDING_COOKIES = [
    ('Set-Cookie', 'XSRF-TOKEN=landing-xsrf%3D; expires=Wed, 01 Jan 2025 10:00:00 GMT; path=/'),
    ('Set-Cookie', 'simplyorg_session=landing-session; path=/; httponly'),
]
LOGIN_COOKIES = [
    ('Set-Cookie', 'XSRF-TOKEN=auth-xsrf; path=/'),
    ('Set-Cookie', 'simplyorg_session=auth-session; path=/; httponly'),
]


def make_manager(**overrides):
    credentials = {
        'base_url': BASE_URL,
        'email': 'sync@example.com',
        'password': 'secret',
    }
    credentials.update(overrides)
    return SessionManager(AuthSession(**credentials), timeout=5)


def add_landing(body=LANDING_HTML, headers=LANDING_COOKIES):
    responses.add(responses.GET, LANDING_URL, body=body, status=200, headers=headers)


def add_login(status=204, headers=LOGIN_COOKIES):
    responses.add(responses.POST, LOGIN_URL, status=status, headers=headers)


class TestSessionManager:
    """Test cases for SessionManager.authenticate."""

    @responses.activate
    def test_authenticate_success(self):
        """Test the full handshake ends authenticated."""
        add_landing()
        add_login(status=204)

        manager = make_manager()
        session = manager.authenticate()

        assert manager.is_authenticated()
        assert session.state is AuthState.AUTHENTICATED
        assert session.xsrf_token == 'auth-xsrf'
        assert session.cookie_header() == (
            'XSRF-TOKEN=auth-xsrf; simplyorg_session=auth-session'
        )
        assert len(responses.calls) == 2

    @responses.activate
    def test_login_request_carries_token_and_cookies(self):
        """Test the login POST uses the meta token and first cookie value."""
        add_landing()
        add_login()

        make_manager().authenticate()

        login_request = responses.calls[1].request
        form = parse_qs(login_request.body)
        assert form['_token'] == ['meta-token-123']
        assert form['email'] == ['sync@example.com']
        assert form['password'] == ['secret']
        # Value of the first cookie, taken literally
        assert login_request.headers['X-CSRF-Token'] == 'landing-xsrf%3D'
        assert login_request.headers['Cookie'] == (
            'XSRF-TOKEN=landing-xsrf%3D; simplyorg_session=landing-session'
        )

    @responses.activate
    def test_login_status_200_is_success(self):
        """Test that 200 is accepted as well as 204."""
        add_landing()
        add_login(status=200)

        manager = make_manager()
        manager.authenticate()

        assert manager.is_authenticated()

    @pytest.mark.parametrize('field', ['base_url', 'email', 'password'])
    def test_missing_credentials(self, field):
        """Test that empty credentials fail before any request."""
        manager = make_manager(**{field: ''})

        with pytest.raises(MissingCredentialsError):
            manager.authenticate()

        assert manager.session.state is AuthState.FAILED
        assert not manager.is_authenticated()

    @responses.activate
    def test_landing_connection_error(self):
        """Test transport failure on the landing page."""
        responses.add(
            responses.GET,
            LANDING_URL,
            body=RequestsConnectionError('connection refused')
        )

        with pytest.raises(AuthConnectionError):
            make_manager().authenticate()

    @responses.activate
    def test_missing_csrf_meta_tag(self):
        """Test landing page without the csrf-token meta tag."""
        add_landing(body='<html><head></head><body></body></html>')

        manager = make_manager()
        with pytest.raises(TokenExtractionError):
            manager.authenticate()

        assert manager.session.state is AuthState.FAILED
        assert len(responses.calls) == 1

    @responses.activate
    def test_missing_landing_cookies(self):
        """Test landing page that sets no cookies."""
        add_landing(headers=[])

        with pytest.raises(CookiesMissingError):
            make_manager().authenticate()

        assert len(responses.calls) == 1

    @responses.activate
    def test_login_rejected(self):
        """Test that wrong credentials surface the status code."""
        add_landing()
        add_login(status=422, headers=[])

        with pytest.raises(LoginRejectedError) as exc_info:
            make_manager().authenticate()

        assert exc_info.value.status == 422

    @responses.activate
    def test_login_without_cookies(self):
        """Test successful login status but no authenticated cookies."""
        add_landing()
        add_login(status=204, headers=[])

        manager = make_manager()
        with pytest.raises(AuthCookiesMissingError):
            manager.authenticate()

        assert not manager.is_authenticated()

    @responses.activate
    def test_reauthenticate_rebuilds_session(self):
        """Test that a second authenticate starts from a fresh session."""
        add_landing()
        add_login()
        add_landing()
        add_login()

        manager = make_manager()
        first = manager.authenticate()
        second = manager.authenticate()

        assert first is not second
        assert second.is_authenticated
        assert len(responses.calls) == 4

    def test_reset_keeps_credentials(self):
        """Test that reset drops cookies but keeps credentials."""
        manager = make_manager()
        manager.session.cookies = ['a=b']
        manager.session.state = AuthState.AUTHENTICATED

        session = manager.reset()

        assert session.cookies == []
        assert session.state is AuthState.UNAUTHENTICATED
        assert session.email == 'sync@example.com'


class TestHandshakeHelpers:
    """Test cases for token and cookie helpers."""

    def test_extract_csrf_token(self):
        assert extract_csrf_token(LANDING_HTML) == 'meta-token-123'

    def test_extract_csrf_token_empty_content(self):
        html = '<meta name="csrf-token" content="">'
        assert extract_csrf_token(html) is None

    def test_token_from_first_cookie_ignores_name(self):
        cookies = ['laravel_session=abc=def; path=/', 'XSRF-TOKEN=xyz']
        assert token_from_first_cookie(cookies) == 'abc=def'

    def test_token_from_first_cookie_without_value(self):
        assert token_from_first_cookie(['flag; path=/']) is None
        assert token_from_first_cookie([]) is None

    def test_url_join(self):
        session = AuthSession('https://host.example.com', 'a', 'b')
        assert session.url('de/login') == 'https://host.example.com/de/login'
