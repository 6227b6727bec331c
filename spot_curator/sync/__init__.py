"""Incremental playlist synchronization."""

from spot_curator.sync.engine import PlaylistSyncEngine, SyncReport

__all__ = ["PlaylistSyncEngine", "SyncReport"]
