"""
OAuth2 token exchange against the Spotify accounts service.

Two grants are supported:
    - authorization_code: code from the redirect -> access + refresh token
    - refresh_token: stored refresh token -> new access token

Both POST application/x-www-form-urlencoded bodies to the token endpoint
and authenticate the client with HTTP Basic (base64 of
"client_id:client_secret"). Neither retries: a failure is reported to the
caller as AuthError and stored credentials are left as they were.

New tokens are written to the CredentialStore before they are returned,
so a crash right after an exchange does not lose them.
"""

import base64
from typing import Any

import requests

from spot_curator.core.exceptions import AuthError
from spot_curator.core.logger import get_logger
from spot_curator.spotify.credentials import CredentialStore
from spot_curator.spotify.models import Credentials

logger = get_logger(__name__)


SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"


class TokenExchanger:
    """
    Exchange authorization codes and refresh tokens for access tokens.

    Args:
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        redirect_uri: Must equal the redirect_uri sent to /authorize.
        store: Where successful results are persisted.
        token_url: Token endpoint (overridable for tests).
        session: requests.Session to use; a new one by default.
        timeout: Seconds before the HTTP request is abandoned.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        store: CredentialStore,
        token_url: str = SPOTIFY_TOKEN_URL,
        session: requests.Session | None = None,
        timeout: float = 30
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.store = store
        self.token_url = token_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def basic_auth_header(self) -> str:
        """The Authorization header value for client authentication."""
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def exchange_code(self, code: str) -> Credentials:
        """
        Trade an authorization code for a full credential set.

        Raises:
            AuthError: On network failure, non-2xx, or a body without
                       access_token and refresh_token.
            StorageError: If the tokens cannot be persisted.
        """
        payload = self._post_form({
            "grant_type": "authorization_code",
            "code": code.strip(),
            "redirect_uri": self.redirect_uri,
        })

        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError(
                "Token response is missing 'access_token'",
                details={"grant_type": "authorization_code"}
            )
        if not isinstance(refresh_token, str) or not refresh_token:
            raise AuthError(
                "Token response is missing 'refresh_token'",
                details={"grant_type": "authorization_code"}
            )

        credentials = Credentials(access_token=access_token, refresh_token=refresh_token)
        self.store.save(credentials)
        logger.info("Authorization code exchanged for tokens")
        return credentials

    def refresh(self, refresh_token: str) -> str:
        """
        Obtain a new access token.

        The refresh token itself is kept: Spotify does not rotate it here.

        Returns:
            The new access token (already persisted).

        Raises:
            AuthError: On network failure, non-2xx, or missing access_token.
            StorageError: If the token cannot be persisted.
        """
        payload = self._post_form({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError(
                "Token response is missing 'access_token'",
                details={"grant_type": "refresh_token"}
            )

        self.store.save(Credentials(access_token=access_token, refresh_token=refresh_token))
        logger.debug("Access token refreshed")
        return access_token

    def refresh_stored(self) -> str:
        """
        Refresh using the refresh token found in the CredentialStore.

        Raises:
            AuthError: If nothing is stored yet, or the refresh fails.
        """
        credentials = self.store.load()
        if credentials is None:
            raise AuthError(
                "No stored Spotify credentials. Run 'spot-curator auth' first.",
                details={"path": str(self.store.path)}
            )
        return self.refresh(credentials.refresh_token)

    def _post_form(self, data: dict[str, str]) -> dict[str, Any]:
        grant_type = data["grant_type"]
        headers = {
            "Authorization": self.basic_auth_header(),
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            response = self.session.post(
                self.token_url, data=data, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AuthError(
                f"Token request failed: {e}",
                details={"grant_type": grant_type, "original_error": str(e)}
            ) from e

        if not 200 <= response.status_code < 300:
            raise AuthError(
                f"Token endpoint returned HTTP {response.status_code}",
                details={
                    "grant_type": grant_type,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                }
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError(
                "Token endpoint returned a body that is not JSON",
                details={"grant_type": grant_type, "body": response.text[:500]}
            ) from e

        if not isinstance(payload, dict):
            raise AuthError(
                "Token endpoint returned an unexpected JSON document",
                details={"grant_type": grant_type}
            )
        return payload
