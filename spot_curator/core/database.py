"""
SQLite database for spot-curator.

Every unique Spotify track is stored once in `tracks`, whatever playlist it
was found in. Each registered playlist owns exactly one `playlist_offset`
row counting how many remote items have already been considered.

Schema:
    playlists:          Registered playlists (id, spotify_id, name)
    playlist_offset:    One row per playlist (playlist_id, offset)
    tracks:             One row per unique spotify_id (+ posted flag)

Usage:
    db = Database(config.storage.database_path)

    playlist = db.add_playlist("37i9dQZF1DX...", "Coffee in the Morning")
    offset = db.get_playlist_offset(playlist.id)

    with db.transaction():
        try:
            db.insert_track(spotify_id, playlist.id, name, url)
        except DuplicateTrackError:
            pass
        db.update_playlist_offset(playlist.id, offset + 1)
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from spot_curator.core.exceptions import DuplicateTrackError, StorageError
from spot_curator.core.logger import get_logger
from spot_curator.spotify.models import Playlist, StoredTrack

logger = get_logger(__name__)


DATABASE_VERSION = 1

# sqlite reports unique violations as "UNIQUE constraint failed: <table>.<column>"
_TRACK_UNIQUE_VIOLATION = "UNIQUE constraint failed: tracks.spotify_id"
_PLAYLIST_UNIQUE_VIOLATION = "UNIQUE constraint failed: playlists.spotify_id"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS playlists (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    spotify_id TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlist_offset (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    playlist_id INTEGER UNIQUE NOT NULL,
    "offset" INTEGER NOT NULL DEFAULT 0 CHECK ("offset" >= 0),
    FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tracks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    spotify_id TEXT UNIQUE NOT NULL,
    playlist_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    posted INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_tracks_posted ON tracks(posted);
CREATE INDEX IF NOT EXISTS idx_tracks_playlist ON tracks(playlist_id);
"""


class Database:
    """
    SQLite storage for playlists, offsets and tracks.

    One connection is opened lazily and reused. It runs in autocommit mode;
    transaction() groups several statements into one atomic unit, which is
    how the sync engine commits a page of inserts together with the offset
    advance for that page.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._in_transaction = False

        if not db_path.parent.exists():
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(
                    f"Cannot create database directory: {db_path.parent}",
                    details={"path": str(db_path.parent), "original_error": str(e)}
                ) from e

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), timeout=30.0, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _init_database(self) -> None:
        conn = self._get_connection()
        conn.executescript(_SCHEMA_SQL)

        row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
        if row is None:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
        elif row[0] != DATABASE_VERSION:
            raise StorageError(
                f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                details={"expected": DATABASE_VERSION, "actual": row[0]}
            )

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Run the enclosed statements atomically.

        Commits when the block exits normally and rolls back on any
        exception, which is re-raised. A failed INSERT inside the block
        (e.g. a duplicate track) only undoes that statement, so callers may
        catch DuplicateTrackError and carry on within the same transaction.

        Raises:
            StorageError: If a transaction is already open, or BEGIN/COMMIT fail.
        """
        if self._in_transaction:
            raise StorageError("Nested transactions are not supported")

        conn = self._get_connection()
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to begin transaction: {e}") from e

        self._in_transaction = True
        try:
            yield
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"Failed to commit transaction: {e}") from e
        finally:
            self._in_transaction = False

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def add_playlist(self, spotify_id: str, name: str) -> Playlist:
        """
        Register a playlist and create its offset row at zero.

        Raises:
            StorageError: If the playlist is already registered.
        """
        conn = self._get_connection()
        try:
            with self.transaction():
                cursor = conn.execute(
                    "INSERT INTO playlists (spotify_id, name) VALUES (?, ?)",
                    (spotify_id, name)
                )
                playlist_id = cursor.lastrowid
                conn.execute(
                    'INSERT INTO playlist_offset (playlist_id, "offset") VALUES (?, 0)',
                    (playlist_id,)
                )
        except sqlite3.IntegrityError as e:
            if _PLAYLIST_UNIQUE_VIOLATION in str(e):
                raise StorageError(
                    f"Playlist already registered: {spotify_id}",
                    details={"spotify_id": spotify_id}
                ) from e
            raise StorageError(
                f"Failed to add playlist: {e}",
                details={"spotify_id": spotify_id}
            ) from e
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to add playlist: {e}",
                details={"spotify_id": spotify_id}
            ) from e

        logger.debug(f"Registered playlist {spotify_id} as id {playlist_id}")
        return Playlist(id=playlist_id, spotify_id=spotify_id, name=name)

    def get_playlists(self) -> list[Playlist]:
        """All registered playlists, in registration order."""
        rows = self._query("SELECT id, spotify_id, name FROM playlists ORDER BY id")
        return [Playlist(id=row["id"], spotify_id=row["spotify_id"], name=row["name"]) for row in rows]

    def get_playlist(self, spotify_id: str) -> Playlist | None:
        rows = self._query(
            "SELECT id, spotify_id, name FROM playlists WHERE spotify_id = ?",
            (spotify_id,)
        )
        if not rows:
            return None
        row = rows[0]
        return Playlist(id=row["id"], spotify_id=row["spotify_id"], name=row["name"])

    # =========================================================================
    # Offset Operations
    # =========================================================================

    def get_playlist_offset(self, playlist_id: int) -> int:
        """
        Number of remote items already considered for a playlist.

        Raises:
            StorageError: If the playlist has no offset row.
        """
        rows = self._query(
            'SELECT "offset" FROM playlist_offset WHERE playlist_id = ?',
            (playlist_id,)
        )
        if not rows:
            raise StorageError(
                f"No offset recorded for playlist id {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return rows[0][0]

    def update_playlist_offset(self, playlist_id: int, offset: int) -> None:
        """
        Advance a playlist's offset.

        Raises:
            StorageError: If the row is missing or offset would decrease.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                'UPDATE playlist_offset SET "offset" = ? WHERE playlist_id = ? AND "offset" <= ?',
                (offset, playlist_id, offset)
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to update playlist offset: {e}",
                details={"playlist_id": playlist_id, "offset": offset}
            ) from e

        if cursor.rowcount != 1:
            raise StorageError(
                f"Refusing to move offset of playlist id {playlist_id} to {offset}",
                details={"playlist_id": playlist_id, "offset": offset}
            )

    # =========================================================================
    # Track Operations
    # =========================================================================

    def insert_track(self, spotify_id: str, playlist_id: int, name: str, url: str) -> int:
        """
        Store a track. Returns the new row id.

        Raises:
            DuplicateTrackError: If spotify_id is already stored (any playlist).
            StorageError: On any other failure.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "INSERT INTO tracks (spotify_id, playlist_id, name, url) VALUES (?, ?, ?, ?)",
                (spotify_id, playlist_id, name, url)
            )
        except sqlite3.IntegrityError as e:
            if _TRACK_UNIQUE_VIOLATION in str(e):
                raise DuplicateTrackError(spotify_id) from e
            raise StorageError(
                f"Failed to insert track {spotify_id}: {e}",
                details={"spotify_id": spotify_id, "playlist_id": playlist_id}
            ) from e
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to insert track {spotify_id}: {e}",
                details={"spotify_id": spotify_id, "playlist_id": playlist_id}
            ) from e
        return cursor.lastrowid

    def get_track(self, spotify_id: str) -> StoredTrack | None:
        rows = self._query("SELECT * FROM tracks WHERE spotify_id = ?", (spotify_id,))
        return self._row_to_track(rows[0]) if rows else None

    def count_tracks(self, playlist_id: int | None = None) -> int:
        if playlist_id is None:
            rows = self._query("SELECT COUNT(*) FROM tracks")
        else:
            rows = self._query("SELECT COUNT(*) FROM tracks WHERE playlist_id = ?", (playlist_id,))
        return rows[0][0]

    def get_tracks_eligible_for_publishing(self) -> list[StoredTrack]:
        """Tracks not yet posted, oldest first."""
        rows = self._query("SELECT * FROM tracks WHERE posted = 0 ORDER BY id")
        return [self._row_to_track(row) for row in rows]

    def mark_posted(self, track: StoredTrack) -> None:
        """
        Flag a track as published.

        Raises:
            StorageError: If the track no longer exists.
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("UPDATE tracks SET posted = 1 WHERE id = ?", (track.id,))
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to mark track as posted: {e}",
                details={"spotify_id": track.spotify_id}
            ) from e

        if cursor.rowcount != 1:
            raise StorageError(
                f"Track not found: {track.spotify_id}",
                details={"spotify_id": track.spotify_id, "id": track.id}
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self._get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Database query failed: {e}", details={"sql": sql}) from e

    @staticmethod
    def _row_to_track(row: sqlite3.Row) -> StoredTrack:
        return StoredTrack(
            id=row["id"],
            spotify_id=row["spotify_id"],
            playlist_id=row["playlist_id"],
            name=row["name"],
            url=row["url"],
            posted=bool(row["posted"]),
        )
