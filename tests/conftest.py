"""Test configuration and fixtures"""

import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from spot_curator.core.config import AuthConfig, Config, SpotifyConfig, StorageConfig, SyncConfig
from spot_curator.core.database import Database
from spot_curator.spotify.credentials import CredentialStore


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def database(temp_dir):
    """SQLite database in a temporary file"""
    db = Database(temp_dir / "curator.db")
    yield db
    db.close()


@pytest.fixture
def credential_store(temp_dir):
    """Credential store writing below the temporary directory"""
    return CredentialStore(temp_dir / ".spotify" / "credentials")


@pytest.fixture
def config(temp_dir):
    """Complete configuration pointing at temporary paths"""
    return Config(
        spotify=SpotifyConfig(client_id="client-id", client_secret="client-secret"),
        storage=StorageConfig(
            data_directory=temp_dir,
            database_path=temp_dir / "curator.db",
            credentials_file=temp_dir / "credentials",
        ),
        auth=AuthConfig(callback_timeout=5, open_browser=False),
        sync=SyncConfig(page_size=2, request_timeout=5),
    )


def make_response(status_code=200, json_data=None, text=""):
    """Fake requests.Response"""
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def fake_response():
    return make_response


def track_item(spotify_id, name=None):
    """One element of a playlist-items response with a present track"""
    return {
        "track": {
            "id": spotify_id,
            "name": name or f"Song {spotify_id}",
            "external_urls": {"spotify": f"https://open.spotify.com/track/{spotify_id}"},
        }
    }


@pytest.fixture
def sample_page_data():
    """Playlist-items response with a withdrawn item between two tracks"""
    return {
        "items": [track_item("t1"), {"track": None}, track_item("t2")],
        "next": None,
    }


@pytest.fixture
def make_track_item():
    return track_item
