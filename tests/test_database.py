"""Test SQLite storage"""

import sqlite3

import pytest

from spot_curator.core.database import DATABASE_VERSION, Database
from spot_curator.core.exceptions import DuplicateTrackError, StorageError


class TestPlaylists:
    """Test playlist registration"""

    def test_add_playlist_creates_offset_at_zero(self, database):
        playlist = database.add_playlist("pl1", "Morning")

        assert playlist.spotify_id == "pl1"
        assert playlist.name == "Morning"
        assert database.get_playlist_offset(playlist.id) == 0

    def test_add_same_playlist_twice_fails(self, database):
        database.add_playlist("pl1", "Morning")

        with pytest.raises(StorageError, match="already registered"):
            database.add_playlist("pl1", "Again")

        assert len(database.get_playlists()) == 1

    def test_get_playlists_in_registration_order(self, database):
        database.add_playlist("b", "Second")
        database.add_playlist("a", "First")

        assert [p.spotify_id for p in database.get_playlists()] == ["b", "a"]

    def test_get_playlist(self, database):
        added = database.add_playlist("pl1", "Morning")

        assert database.get_playlist("pl1") == added
        assert database.get_playlist("missing") is None


class TestOffsets:
    """Test playlist offset bookkeeping"""

    def test_update_offset(self, database):
        playlist = database.add_playlist("pl1", "Morning")

        database.update_playlist_offset(playlist.id, 40)

        assert database.get_playlist_offset(playlist.id) == 40

    def test_offset_never_decreases(self, database):
        playlist = database.add_playlist("pl1", "Morning")
        database.update_playlist_offset(playlist.id, 40)

        with pytest.raises(StorageError):
            database.update_playlist_offset(playlist.id, 10)

        assert database.get_playlist_offset(playlist.id) == 40

    def test_missing_offset_row(self, database):
        with pytest.raises(StorageError):
            database.get_playlist_offset(999)


class TestTracks:
    """Test track storage"""

    def test_insert_and_get_track(self, database):
        playlist = database.add_playlist("pl1", "Morning")

        database.insert_track("t1", playlist.id, "Song", "https://open.spotify.com/track/t1")
        track = database.get_track("t1")

        assert track.name == "Song"
        assert track.playlist_id == playlist.id
        assert track.posted is False

    def test_duplicate_across_playlists(self, database):
        first = database.add_playlist("pl1", "Morning")
        second = database.add_playlist("pl2", "Evening")
        database.insert_track("t1", first.id, "Song", "url")

        with pytest.raises(DuplicateTrackError) as exc_info:
            database.insert_track("t1", second.id, "Song", "url")

        assert exc_info.value.spotify_id == "t1"
        assert database.count_tracks() == 1
        assert database.get_track("t1").playlist_id == first.id

    def test_unknown_playlist_is_storage_error(self, database):
        with pytest.raises(StorageError):
            database.insert_track("t1", 999, "Song", "url")

    def test_count_tracks_per_playlist(self, database):
        first = database.add_playlist("pl1", "Morning")
        second = database.add_playlist("pl2", "Evening")
        database.insert_track("t1", first.id, "A", "url")
        database.insert_track("t2", first.id, "B", "url")
        database.insert_track("t3", second.id, "C", "url")

        assert database.count_tracks() == 3
        assert database.count_tracks(first.id) == 2

    def test_eligible_for_publishing_and_mark_posted(self, database):
        playlist = database.add_playlist("pl1", "Morning")
        database.insert_track("t1", playlist.id, "A", "url1")
        database.insert_track("t2", playlist.id, "B", "url2")

        eligible = database.get_tracks_eligible_for_publishing()
        assert [t.spotify_id for t in eligible] == ["t1", "t2"]

        database.mark_posted(eligible[0])

        assert [t.spotify_id for t in database.get_tracks_eligible_for_publishing()] == ["t2"]
        assert database.get_track("t1").posted is True


class TestTransaction:
    """Test transaction handling"""

    def test_rollback_on_error(self, database):
        playlist = database.add_playlist("pl1", "Morning")

        with pytest.raises(RuntimeError):
            with database.transaction():
                database.insert_track("t1", playlist.id, "A", "url")
                database.update_playlist_offset(playlist.id, 1)
                raise RuntimeError("boom")

        assert database.count_tracks() == 0
        assert database.get_playlist_offset(playlist.id) == 0

    def test_duplicate_inside_transaction_keeps_other_inserts(self, database):
        playlist = database.add_playlist("pl1", "Morning")
        database.insert_track("t1", playlist.id, "A", "url")

        with database.transaction():
            with pytest.raises(DuplicateTrackError):
                database.insert_track("t1", playlist.id, "A", "url")
            database.insert_track("t2", playlist.id, "B", "url")

        assert database.count_tracks() == 2

    def test_nested_transaction_rejected(self, database):
        with database.transaction():
            with pytest.raises(StorageError):
                with database.transaction():
                    pass


class TestSchema:
    """Test schema versioning"""

    def test_reopen_keeps_data(self, temp_dir):
        path = temp_dir / "curator.db"
        with Database(path) as db:
            db.add_playlist("pl1", "Morning")

        with Database(path) as db:
            assert db.get_playlist("pl1") is not None

    def test_version_mismatch(self, temp_dir):
        path = temp_dir / "curator.db"
        Database(path).close()
        conn = sqlite3.connect(str(path))
        conn.execute("UPDATE schema_version SET version = ?", (DATABASE_VERSION + 1,))
        conn.commit()
        conn.close()

        with pytest.raises(StorageError, match="version mismatch"):
            Database(path)

    def test_creates_parent_directory(self, temp_dir):
        path = temp_dir / "nested" / "dir" / "curator.db"

        with Database(path):
            pass

        assert path.exists()
