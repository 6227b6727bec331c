"""
Incremental playlist synchronization.

For each registered playlist the engine resumes at the stored offset and
walks the remote listing page by page:

    1. Fetch one page starting at the current offset
    2. Skip withdrawn items (no catalog track)
    3. Insert each present track; a track whose Spotify ID is already
       stored (from this or any other playlist) is skipped silently
    4. Advance the offset by the number of items in the page, withdrawn
       and duplicate ones included, in the same transaction as the inserts
    5. Continue while Spotify reports a next page

The offset mirrors how far into the remote ordering the sync has read, not
how many rows are stored. Counting skipped items keeps it aligned with
Spotify's offset pagination, so a re-run does not request the same page
forever.

A fetch failure aborts the playlist; pages committed before it stay
committed, so a retry resumes at the last completed page.
"""

from dataclasses import dataclass
from typing import Protocol

from tqdm import tqdm

from spot_curator.core.database import Database
from spot_curator.core.exceptions import DuplicateTrackError, FetchError, StorageError
from spot_curator.core.logger import get_logger, log_sync_failure
from spot_curator.spotify.models import Playlist, PresentTrack, TrackPage, WithdrawnTrack

logger = get_logger(__name__)


class PageSource(Protocol):
    """Anything that can fetch one page of a playlist (PlaylistClient)."""

    def fetch_page(self, playlist_id: str, offset: int) -> TrackPage:
        ...


@dataclass
class SyncReport:
    """
    Outcome of syncing one playlist.

    Attributes:
        playlist: The playlist that was synced.
        start_offset: Offset read before the first page.
        end_offset: Offset committed after the last page.
        pages: Pages fetched and committed.
        inserted: New tracks stored.
        duplicates: Tracks skipped because they were already stored.
        withdrawn: Items skipped because the catalog track is unavailable.
    """
    playlist: Playlist
    start_offset: int
    end_offset: int
    pages: int = 0
    inserted: int = 0
    duplicates: int = 0
    withdrawn: int = 0

    @property
    def items_consumed(self) -> int:
        return self.end_offset - self.start_offset

    def summary(self) -> str:
        return (
            f"{self.playlist.name}: {self.inserted} new, {self.duplicates} already known, "
            f"{self.withdrawn} unavailable (offset {self.start_offset} -> {self.end_offset})"
        )


class PlaylistSyncEngine:
    """
    Drive page fetching and track insertion for registered playlists.

    Args:
        database: Local storage.
        client: Page source, normally a PlaylistClient.
        show_progress: Show a tqdm bar in sync_all().
    """

    def __init__(
        self,
        database: Database,
        client: PageSource,
        show_progress: bool = False
    ) -> None:
        self.database = database
        self.client = client
        self.show_progress = show_progress

    def sync(self, playlist: Playlist) -> SyncReport:
        """
        Bring one playlist up to date.

        Returns:
            SyncReport describing what happened.

        Raises:
            FetchError: A page could not be fetched. Its details name the
                        playlist and the offset a retry will resume from.
            StorageError: A non-duplicate storage failure. The page being
                          processed is rolled back.
        """
        offset = self.database.get_playlist_offset(playlist.id)
        report = SyncReport(playlist=playlist, start_offset=offset, end_offset=offset)
        logger.info(f"Syncing '{playlist.name}' from offset {offset}")

        while True:
            page = self._fetch(playlist, offset)

            try:
                self._commit_page(playlist, page, report)
            except StorageError as e:
                log_sync_failure(logger, playlist.name, playlist.spotify_id, offset, e.message)
                raise

            offset += len(page.items)
            report.end_offset = offset
            report.pages += 1

            if not page.has_next or not page.items:
                break

        logger.info(report.summary())
        return report

    def sync_all(self) -> list[SyncReport]:
        """
        Sync every registered playlist in registration order.

        Stops at the first failure; playlists synced before it keep their
        progress.
        """
        playlists = self.database.get_playlists()
        reports = []

        for playlist in tqdm(
            playlists,
            desc="Playlists",
            unit="playlist",
            disable=not self.show_progress,
        ):
            reports.append(self.sync(playlist))

        return reports

    def _fetch(self, playlist: Playlist, offset: int) -> TrackPage:
        try:
            return self.client.fetch_page(playlist.spotify_id, offset)
        except FetchError as e:
            log_sync_failure(logger, playlist.name, playlist.spotify_id, offset, e.message)
            raise FetchError(
                f"Sync of '{playlist.name}' stopped at offset {offset}: {e.message}",
                playlist_id=playlist.spotify_id,
                offset=offset,
                details={**e.details, "playlist_name": playlist.name}
            ) from e

    def _commit_page(self, playlist: Playlist, page: TrackPage, report: SyncReport) -> None:
        """Insert a page's tracks and advance the offset atomically."""
        with self.database.transaction():
            for item in page.items:
                if isinstance(item, WithdrawnTrack):
                    logger.debug(f"Skipping unavailable item at position {item.position}")
                    report.withdrawn += 1
                elif isinstance(item, PresentTrack):
                    self._insert(playlist, item, report)

            if page.items:
                self.database.update_playlist_offset(playlist.id, page.offset + len(page.items))

    def _insert(self, playlist: Playlist, track: PresentTrack, report: SyncReport) -> None:
        try:
            self.database.insert_track(track.spotify_id, playlist.id, track.name, track.url)
        except DuplicateTrackError:
            logger.info(f"Already stored, skipping: {track.name} ({track.spotify_id})")
            report.duplicates += 1
            return
        report.inserted += 1
