"""
Spotify OAuth2 authorization-code flow.

The flow for one `spot-curator auth` run:
    1. Generate a fresh CSRF state for this attempt
    2. Build the /authorize URL and open it in the browser
    3. Wait for the redirect on the local CallbackListener
    4. Validate state; exchange the code through TokenExchanger
    5. TokenExchanger persists the tokens in the CredentialStore

A state mismatch stops the attempt before any call to the token endpoint.
Failures leave previously stored credentials untouched.
"""

import webbrowser
from typing import Callable
from urllib.parse import urlencode

from spot_curator.core.config import Config
from spot_curator.core.logger import get_logger
from spot_curator.spotify.callback import CallbackListener
from spot_curator.spotify.credentials import CredentialStore
from spot_curator.spotify.csrf import CsrfStateGenerator
from spot_curator.spotify.models import Credentials
from spot_curator.spotify.tokens import TokenExchanger

logger = get_logger(__name__)


SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"


def build_authorize_url(
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    auth_url: str = SPOTIFY_AUTH_URL
) -> str:
    """Authorization page URL the user is sent to."""
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
        "show_dialog": "false",
    }
    return f"{auth_url}?{urlencode(params)}"


class Authenticator:
    """
    Run the browser-based authorization for one attempt.

    Args:
        client_id: Spotify application client ID.
        redirect_uri: Registered loopback redirect URI.
        scope: Requested scopes.
        exchanger: Performs and persists the code exchange.
        listener_factory: Builds the CallbackListener; receives the expected
                          state and the code handler.
        state_generator: Source of CSRF state values.
        open_browser: Callable opening a URL, or None to only print it.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        scope: str,
        exchanger: TokenExchanger,
        listener_factory: Callable[[str, Callable[[str], Credentials]], CallbackListener],
        state_generator: CsrfStateGenerator | None = None,
        open_browser: Callable[[str], bool] | None = webbrowser.open
    ) -> None:
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.exchanger = exchanger
        self.listener_factory = listener_factory
        self.state_generator = state_generator or CsrfStateGenerator()
        self.open_browser = open_browser

    @classmethod
    def from_config(cls, config: Config) -> "Authenticator":
        """Wire the real components from the application configuration."""
        store = CredentialStore(
            config.storage.credentials_file, config.storage.credentials_section
        )
        exchanger = TokenExchanger(
            client_id=config.spotify.client_id,
            client_secret=config.spotify.client_secret,
            redirect_uri=config.spotify.redirect_uri,
            store=store,
            timeout=config.sync.request_timeout,
        )

        def listener_factory(state, on_code):
            return CallbackListener(
                host=config.spotify.callback_host,
                port=config.spotify.callback_port,
                path=config.spotify.callback_path,
                expected_state=state,
                on_code=on_code,
                timeout=config.auth.callback_timeout,
            )

        return cls(
            client_id=config.spotify.client_id,
            redirect_uri=config.spotify.redirect_uri,
            scope=config.spotify.scope,
            exchanger=exchanger,
            listener_factory=listener_factory,
            open_browser=webbrowser.open if config.auth.open_browser else None,
        )

    def authenticate(self) -> Credentials:
        """
        Perform one complete authorization attempt.

        Returns:
            The freshly stored credentials.

        Raises:
            InvalidOAuthStateError: The redirect carried a foreign state.
            CallbackTimeoutError: No redirect arrived in time.
            AuthError: Consent denied or token exchange failed.
            StorageError: Tokens could not be written.
        """
        state = self.state_generator.generate()
        url = build_authorize_url(self.client_id, self.redirect_uri, self.scope, state)

        listener = self.listener_factory(state, self.exchanger.exchange_code)
        listener.start()
        try:
            self._show_authorize_url(url)
            logger.info("Waiting for authorization callback...")
            credentials = listener.wait()
        finally:
            listener.stop()

        logger.info("Successfully authenticated!")
        return credentials

    def _show_authorize_url(self, url: str) -> None:
        logger.info(f"If the browser doesn't open, visit: {url}")
        if self.open_browser is None:
            return
        try:
            opened = self.open_browser(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
            return
        if not opened:
            logger.warning("Could not open browser; open the URL above manually")
