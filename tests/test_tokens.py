"""Test token endpoint exchanges"""

import base64
from unittest.mock import Mock

import pytest
import requests

from spot_curator.core.exceptions import AuthError
from spot_curator.spotify.models import Credentials
from spot_curator.spotify.tokens import SPOTIFY_TOKEN_URL, TokenExchanger


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def exchanger(credential_store, session):
    return TokenExchanger(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/auth",
        store=credential_store,
        session=session,
        timeout=5,
    )


class TestBasicAuth:
    """Test client credential encoding"""

    def test_basic_auth_header(self, exchanger):
        expected = base64.b64encode(b"client-id:client-secret").decode("ascii")

        assert exchanger.basic_auth_header() == f"Basic {expected}"


class TestExchangeCode:
    """Test the authorization-code grant"""

    def test_success_persists_and_returns(self, exchanger, session, credential_store, fake_response):
        session.post.return_value = fake_response(
            json_data={"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600}
        )

        credentials = exchanger.exchange_code(" the-code\n")

        assert credentials == Credentials("access-1", "refresh-1")
        assert credential_store.load() == credentials

        args, kwargs = session.post.call_args
        assert args[0] == SPOTIFY_TOKEN_URL
        assert kwargs["data"] == {
            "grant_type": "authorization_code",
            "code": "the-code",
            "redirect_uri": "http://localhost:8000/auth",
        }
        assert kwargs["headers"]["Authorization"] == exchanger.basic_auth_header()
        assert kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
        assert kwargs["timeout"] == 5

    def test_non_2xx(self, exchanger, session, credential_store, fake_response):
        session.post.return_value = fake_response(status_code=400, text='{"error":"invalid_grant"}')

        with pytest.raises(AuthError) as exc_info:
            exchanger.exchange_code("bad-code")

        assert exc_info.value.details["status_code"] == 400
        assert credential_store.load() is None

    def test_body_not_json(self, exchanger, session, fake_response):
        session.post.return_value = fake_response(json_data=ValueError("no json"), text="<html>")

        with pytest.raises(AuthError):
            exchanger.exchange_code("code")

    def test_missing_refresh_token(self, exchanger, session, credential_store, fake_response):
        session.post.return_value = fake_response(json_data={"access_token": "access-1"})

        with pytest.raises(AuthError, match="refresh_token"):
            exchanger.exchange_code("code")

        assert credential_store.load() is None

    def test_network_error(self, exchanger, session):
        session.post.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(AuthError, match="Token request failed"):
            exchanger.exchange_code("code")


class TestRefresh:
    """Test the refresh-token grant"""

    def test_refresh_keeps_refresh_token(self, exchanger, session, credential_store, fake_response):
        credential_store.save(Credentials("old-access", "refresh-1"))
        session.post.return_value = fake_response(json_data={"access_token": "new-access"})

        assert exchanger.refresh("refresh-1") == "new-access"
        assert credential_store.load() == Credentials("new-access", "refresh-1")

        _, kwargs = session.post.call_args
        assert kwargs["data"] == {"grant_type": "refresh_token", "refresh_token": "refresh-1"}

    def test_rejected_refresh_leaves_store_untouched(
        self, exchanger, session, credential_store, fake_response
    ):
        credential_store.save(Credentials("old-access", "refresh-1"))
        session.post.return_value = fake_response(status_code=400, text="invalid_grant")

        with pytest.raises(AuthError):
            exchanger.refresh("refresh-1")

        assert credential_store.load() == Credentials("old-access", "refresh-1")

    def test_refresh_stored(self, exchanger, session, credential_store, fake_response):
        credential_store.save(Credentials("old-access", "refresh-1"))
        session.post.return_value = fake_response(json_data={"access_token": "new-access"})

        assert exchanger.refresh_stored() == "new-access"

    def test_refresh_stored_without_credentials(self, exchanger, session):
        with pytest.raises(AuthError, match="spot-curator auth"):
            exchanger.refresh_stored()

        session.post.assert_not_called()
