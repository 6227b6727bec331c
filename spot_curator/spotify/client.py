"""
Playlist track listing client.

Wraps spotipy to fetch one page of a playlist's items at a given offset,
asking only for the fields the sync needs:

    fields=next,items(track(id,name,external_urls))

Any transport, HTTP or payload problem is raised as FetchError carrying
the playlist id and offset, so the sync engine can report exactly where
it stopped.
"""

from typing import Any

import requests
import spotipy

from spot_curator.core.exceptions import FetchError
from spot_curator.core.logger import get_logger
from spot_curator.spotify.models import TrackPage

logger = get_logger(__name__)


TRACK_FIELDS = "next,items(track(id,name,external_urls))"
MAX_PAGE_SIZE = 100


class PlaylistClient:
    """
    Fetch pages of playlist items.

    Args:
        session: Authenticated spotipy.Spotify instance.
        page_size: Items per request (1-100).
    """

    def __init__(self, session: spotipy.Spotify, page_size: int = MAX_PAGE_SIZE) -> None:
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        self.session = session
        self.page_size = page_size

    @classmethod
    def from_access_token(
        cls,
        access_token: str,
        page_size: int = MAX_PAGE_SIZE,
        timeout: float = 30
    ) -> "PlaylistClient":
        """Create a client authenticated with a bearer token."""
        session = spotipy.Spotify(auth=access_token, requests_timeout=timeout)
        return cls(session, page_size=page_size)

    def fetch_page(self, playlist_id: str, offset: int) -> TrackPage:
        """
        Fetch the items starting at `offset`.

        Args:
            playlist_id: Spotify playlist ID.
            offset: Position of the first item to return.

        Returns:
            TrackPage with parsed items and the next-page URL (if any).

        Raises:
            FetchError: On network errors, non-2xx responses or a payload
                        that does not match the expected shape.
        """
        logger.debug(f"Fetching playlist {playlist_id} at offset {offset}")

        try:
            data: Any = self.session.playlist_items(
                playlist_id,
                fields=TRACK_FIELDS,
                limit=self.page_size,
                offset=offset,
            )
        except spotipy.SpotifyException as e:
            raise FetchError(
                f"Spotify returned HTTP {e.http_status}: {e.msg}",
                playlist_id=playlist_id,
                offset=offset,
                details={"status_code": e.http_status, "original_error": str(e)}
            ) from e
        except requests.RequestException as e:
            raise FetchError(
                f"Network error while fetching playlist: {e}",
                playlist_id=playlist_id,
                offset=offset,
                details={"original_error": str(e)}
            ) from e

        if not isinstance(data, dict):
            raise FetchError(
                "Unexpected response while fetching playlist",
                playlist_id=playlist_id,
                offset=offset,
            )

        try:
            return TrackPage.from_spotify_api(data, offset)
        except (KeyError, TypeError, AttributeError) as e:
            raise FetchError(
                f"Malformed playlist page: {e!r}",
                playlist_id=playlist_id,
                offset=offset,
                details={"original_error": repr(e)}
            ) from e
