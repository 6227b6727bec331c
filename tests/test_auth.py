"""Test the authorization flow"""

import webbrowser
from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest

from spot_curator.core.exceptions import AuthError, InvalidOAuthStateError
from spot_curator.spotify.auth import SPOTIFY_AUTH_URL, Authenticator, build_authorize_url
from spot_curator.spotify.callback import CallbackListener
from spot_curator.spotify.models import Credentials


class TestBuildAuthorizeUrl:
    """Test the authorization page URL"""

    def test_parameters(self):
        url = build_authorize_url(
            "client-id", "http://localhost:8000/auth", "playlist-read-private", "state-1"
        )

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert url.startswith(SPOTIFY_AUTH_URL + "?")
        assert params == {
            "client_id": "client-id",
            "response_type": "code",
            "redirect_uri": "http://localhost:8000/auth",
            "scope": "playlist-read-private",
            "state": "state-1",
            "show_dialog": "false",
        }


def make_authenticator(listener, open_browser=None, state="state-1"):
    state_generator = Mock()
    state_generator.generate.return_value = state
    exchanger = Mock()
    factory = Mock(return_value=listener)
    authenticator = Authenticator(
        client_id="client-id",
        redirect_uri="http://localhost:8000/auth",
        scope="playlist-read-private",
        exchanger=exchanger,
        listener_factory=factory,
        state_generator=state_generator,
        open_browser=open_browser,
    )
    return authenticator, factory, exchanger


class TestAuthenticator:
    """Test one authorization attempt"""

    def test_successful_attempt(self):
        listener = Mock()
        listener.wait.return_value = Credentials("a", "r")
        browser = Mock(return_value=True)
        authenticator, factory, exchanger = make_authenticator(listener, open_browser=browser)

        assert authenticator.authenticate() == Credentials("a", "r")

        factory.assert_called_once_with("state-1", exchanger.exchange_code)
        listener.start.assert_called_once()
        listener.stop.assert_called_once()
        opened_url = browser.call_args[0][0]
        assert "state=state-1" in opened_url

    def test_listener_stopped_on_failure(self):
        listener = Mock()
        listener.wait.side_effect = InvalidOAuthStateError()
        authenticator, _, exchanger = make_authenticator(listener)

        with pytest.raises(InvalidOAuthStateError):
            authenticator.authenticate()

        listener.stop.assert_called_once()
        exchanger.exchange_code.assert_not_called()

    def test_browser_failure_is_not_fatal(self):
        listener = Mock()
        listener.wait.return_value = Credentials("a", "r")
        browser = Mock(side_effect=webbrowser.Error("no browser"))
        authenticator, _, _ = make_authenticator(listener, open_browser=browser)

        assert authenticator.authenticate() == Credentials("a", "r")

    def test_fresh_state_per_attempt(self):
        listener = Mock()
        authenticator, factory, _ = make_authenticator(listener)
        authenticator.state_generator.generate.side_effect = ["s1", "s2"]

        authenticator.authenticate()
        authenticator.authenticate()

        assert [c[0][0] for c in factory.call_args_list] == ["s1", "s2"]

    def test_forged_redirect_end_to_end(self):
        """A redirect with another attempt's state never reaches the exchanger."""
        exchanger = Mock()
        listeners = []

        def factory(state, on_code):
            server = Mock()
            listener = CallbackListener(
                "127.0.0.1", 8000, "/auth", state, on_code,
                server_factory=Mock(return_value=server)
            )
            server.handle_request.side_effect = lambda: listener.handle_callback(
                "/auth?code=abc&state=someone-else"
            )
            listeners.append(listener)
            return listener

        authenticator = Authenticator(
            client_id="client-id",
            redirect_uri="http://localhost:8000/auth",
            scope="playlist-read-private",
            exchanger=exchanger,
            listener_factory=factory,
            open_browser=None,
        )

        with pytest.raises(InvalidOAuthStateError):
            authenticator.authenticate()

        exchanger.exchange_code.assert_not_called()
        assert listeners[0].outcome.value == "rejected"


class TestFromConfig:
    """Test wiring from configuration"""

    def test_from_config(self, config):
        authenticator = Authenticator.from_config(config)

        assert authenticator.client_id == "client-id"
        assert authenticator.redirect_uri == "http://localhost:8000/auth"
        assert authenticator.open_browser is None
        assert authenticator.exchanger.store.path == config.storage.credentials_file

        listener = authenticator.listener_factory("state-1", Mock())
        assert listener.port == 8000
        assert listener.path == "/auth"
        assert listener.timeout == 5

    def test_auth_error_propagates(self):
        listener = Mock()
        listener.start.side_effect = AuthError("Cannot listen on localhost:8000")
        authenticator, _, _ = make_authenticator(listener)

        with pytest.raises(AuthError):
            authenticator.authenticate()

        listener.wait.assert_not_called()
