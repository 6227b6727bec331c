"""
Data models for Spotify entities and locally stored rows.

This module defines immutable dataclasses passed between the auth flow,
the playlist client, the sync engine and storage.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - A playlist item is either PresentTrack or WithdrawnTrack; the sync
      engine dispatches on the type instead of probing nullable fields
    - Models are independent of the SQLite row format; Database converts

Usage:
    from spot_curator.spotify.models import PresentTrack, TrackPage

    page = TrackPage.from_spotify_api(response)
    for item in page.items:
        if isinstance(item, PresentTrack):
            ...
"""

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Credentials:
    """
    OAuth tokens persisted by CredentialStore.

    Attributes:
        access_token: Short-lived bearer token for API calls.
        refresh_token: Long-lived token used to obtain new access tokens.
                       Spotify does not rotate it on refresh.
    """
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Playlist:
    """
    A registered playlist.

    Attributes:
        id: Local surrogate key.
        spotify_id: Remote playlist identifier (unique).
        name: Display name given when the playlist was added.
    """
    id: int
    spotify_id: str
    name: str


@dataclass(frozen=True)
class StoredTrack:
    """
    A track row as kept in the local database.

    Attributes:
        id: Local surrogate key.
        spotify_id: Remote track identifier, unique across all playlists.
        playlist_id: Local id of the playlist the track was first seen in.
        name: Track title.
        url: Public Spotify URL (what gets published).
        posted: True once the publishing collaborator succeeded.
    """
    id: int
    spotify_id: str
    playlist_id: int
    name: str
    url: str
    posted: bool = False


@dataclass(frozen=True)
class PresentTrack:
    """A playlist item backed by an available catalog track."""
    spotify_id: str
    name: str
    url: str


@dataclass(frozen=True)
class WithdrawnTrack:
    """
    A playlist item with no usable catalog track.

    Spotify returns {"track": null} for tracks removed from the catalog;
    local files and some unavailable entries come back without an id.
    Both still occupy a position in the remote ordering.
    """
    position: int


TrackItem = Union[PresentTrack, WithdrawnTrack]


def parse_track_item(item: dict[str, Any], position: int) -> TrackItem:
    """
    Convert one element of a playlist-items response.

    Args:
        item: The raw item dict ({"track": {...} | None}).
        position: Absolute position of the item in the playlist.

    Raises:
        KeyError, TypeError: If a present track lacks name or URL.
    """
    track = item.get("track")
    if not track or not track.get("id"):
        return WithdrawnTrack(position=position)

    return PresentTrack(
        spotify_id=track["id"],
        name=track["name"],
        url=track["external_urls"]["spotify"],
    )


@dataclass(frozen=True)
class TrackPage:
    """
    One page of a playlist's track listing.

    Attributes:
        offset: Position of the first item in the remote ordering.
        items: Parsed items, in remote order (withdrawn ones included).
        next: URL of the following page, or None on the last page.
    """
    offset: int
    items: tuple[TrackItem, ...]
    next: str | None = None

    @property
    def has_next(self) -> bool:
        return bool(self.next)

    @property
    def present(self) -> list[PresentTrack]:
        return [item for item in self.items if isinstance(item, PresentTrack)]

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any], offset: int) -> "TrackPage":
        """
        Build a page from a /playlists/{id}/tracks response.

        Raises:
            KeyError, TypeError: If the payload does not have the expected shape.
        """
        raw_items = data["items"]
        if not isinstance(raw_items, list):
            raise TypeError(f"'items' must be a list, got {type(raw_items).__name__}")

        items = tuple(
            parse_track_item(item, offset + index)
            for index, item in enumerate(raw_items)
        )
        return cls(offset=offset, items=items, next=data.get("next"))
