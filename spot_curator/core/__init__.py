"""
Core module for spot-curator.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: SQLite storage for playlists, offsets and tracks
    - logger: Logging system with multiple outputs

Usage:
    from spot_curator.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        SpotCuratorError, ConfigError, StorageError
    )
"""

from spot_curator.core.config import (
    AuthConfig,
    Config,
    SpotifyConfig,
    StorageConfig,
    SyncConfig,
    load_config,
)
from spot_curator.core.database import DATABASE_VERSION, Database
from spot_curator.core.exceptions import (
    AuthError,
    CallbackTimeoutError,
    ConfigError,
    DuplicateTrackError,
    FetchError,
    InvalidOAuthStateError,
    PublishError,
    SpotCuratorError,
    StorageError,
)
from spot_curator.core.logger import (
    get_logger,
    log_sync_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "StorageConfig",
    "AuthConfig",
    "SyncConfig",
    "load_config",
    # Database
    "Database",
    "DATABASE_VERSION",
    # Exceptions
    "SpotCuratorError",
    "ConfigError",
    "StorageError",
    "DuplicateTrackError",
    "AuthError",
    "InvalidOAuthStateError",
    "CallbackTimeoutError",
    "FetchError",
    "PublishError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_sync_failure",
    "shutdown_logging",
]
