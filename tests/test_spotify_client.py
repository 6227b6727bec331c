"""Test playlist page fetching"""

from unittest.mock import Mock, patch

import pytest
import requests
import spotipy

from spot_curator.core.exceptions import FetchError
from spot_curator.spotify.client import TRACK_FIELDS, PlaylistClient


@pytest.fixture
def session():
    return Mock()


class TestPlaylistClient:
    """Test PlaylistClient.fetch_page"""

    def test_fetch_page(self, session, sample_page_data):
        session.playlist_items.return_value = sample_page_data
        client = PlaylistClient(session, page_size=50)

        page = client.fetch_page("pl1", 100)

        session.playlist_items.assert_called_once_with(
            "pl1", fields=TRACK_FIELDS, limit=50, offset=100
        )
        assert page.offset == 100
        assert len(page.items) == 3

    def test_http_error(self, session):
        session.playlist_items.side_effect = spotipy.SpotifyException(
            502, -1, "Bad gateway"
        )
        client = PlaylistClient(session)

        with pytest.raises(FetchError) as exc_info:
            client.fetch_page("pl1", 40)

        assert exc_info.value.playlist_id == "pl1"
        assert exc_info.value.offset == 40
        assert exc_info.value.details["status_code"] == 502

    def test_network_error(self, session):
        session.playlist_items.side_effect = requests.ConnectionError("reset")

        with pytest.raises(FetchError, match="Network error"):
            PlaylistClient(session).fetch_page("pl1", 0)

    def test_malformed_payload(self, session):
        session.playlist_items.return_value = {"items": [{"track": {"id": "t1"}}]}

        with pytest.raises(FetchError, match="Malformed"):
            PlaylistClient(session).fetch_page("pl1", 0)

    def test_unexpected_response(self, session):
        session.playlist_items.return_value = None

        with pytest.raises(FetchError):
            PlaylistClient(session).fetch_page("pl1", 0)

    @pytest.mark.parametrize("page_size", [0, 101])
    def test_page_size_bounds(self, session, page_size):
        with pytest.raises(ValueError):
            PlaylistClient(session, page_size=page_size)

    def test_from_access_token(self):
        with patch("spot_curator.spotify.client.spotipy.Spotify") as mock_spotify:
            client = PlaylistClient.from_access_token("token", page_size=20, timeout=7)

        mock_spotify.assert_called_once_with(auth="token", requests_timeout=7)
        assert client.session is mock_spotify.return_value
        assert client.page_size == 20
