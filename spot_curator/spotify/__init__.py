"""
Spotify module for spot-curator.

    - models: Credentials, playlists, stored tracks and playlist pages
    - credentials: INI credential file
    - csrf: OAuth state values
    - tokens: Authorization-code and refresh-token exchanges
    - callback: Local listener for the OAuth redirect
    - auth: Authorization URL and the browser flow
    - client: Playlist page fetching via spotipy
"""

from spot_curator.spotify.auth import Authenticator, build_authorize_url
from spot_curator.spotify.callback import CallbackListener, ListenerState
from spot_curator.spotify.client import PlaylistClient
from spot_curator.spotify.credentials import CredentialStore
from spot_curator.spotify.csrf import CsrfStateGenerator
from spot_curator.spotify.models import (
    Credentials,
    Playlist,
    PresentTrack,
    StoredTrack,
    TrackItem,
    TrackPage,
    WithdrawnTrack,
)
from spot_curator.spotify.tokens import TokenExchanger

__all__ = [
    "Authenticator",
    "build_authorize_url",
    "CallbackListener",
    "ListenerState",
    "PlaylistClient",
    "CredentialStore",
    "CsrfStateGenerator",
    "Credentials",
    "Playlist",
    "PresentTrack",
    "StoredTrack",
    "TrackItem",
    "TrackPage",
    "WithdrawnTrack",
    "TokenExchanger",
]
