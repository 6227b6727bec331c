"""
Exception classes for spot-curator.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so the CLI can print something short while the log file keeps
the context needed to debug a failure.

Exception Hierarchy:
    SpotCuratorError (base)
        ConfigError - Configuration file / environment issues
        StorageError - SQLite or credential file failures (fatal)
        DuplicateTrackError - Track already stored (expected, non-fatal)
        AuthError - Token endpoint or authorization failures
            InvalidOAuthStateError - Redirect state does not match
            CallbackTimeoutError - No redirect arrived in time
        FetchError - Network/parse failure while paginating a playlist
        PublishError - Publishing collaborator reported failure
"""


class SpotCuratorError(Exception):
    """
    Base exception for all spot-curator errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (playlist ids,
                 offsets, HTTP status codes, the wrapped error).

    Example:
        try:
            engine.sync(playlist)
        except SpotCuratorError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotCuratorError):
    """
    Raised when the configuration cannot be loaded or is invalid.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - Explicit config path does not exist
        - config.yaml has invalid YAML syntax
        - client_id / client_secret missing from both file and environment
        - redirect_uri is not a loopback http URL
    """
    pass


class StorageError(SpotCuratorError):
    """
    Raised when local persistence fails.

    This is a CRITICAL error: the current operation is aborted and, for a
    sync, the playlist offset is left at its last committed value.

    Common causes:
        - Database file cannot be opened or has a different schema version
        - Foreign key / NOT NULL violations
        - Credential file cannot be written
    """
    pass


class DuplicateTrackError(SpotCuratorError):
    """
    Raised when a track with the same Spotify ID is already stored.

    This is EXPECTED during sync: the same track may appear in several
    playlists, or a page may be re-read after an interrupted run. The sync
    engine swallows it and moves on.
    """

    def __init__(self, spotify_id: str) -> None:
        super().__init__(
            f"Track already stored: {spotify_id}",
            details={"spotify_id": spotify_id}
        )
        self.spotify_id = spotify_id


class AuthError(SpotCuratorError):
    """
    Raised when authentication against Spotify fails.

    Common causes:
        - Invalid client_id / client_secret
        - Authorization code or refresh token rejected (non-2xx)
        - Token endpoint returned a body without the expected fields
        - No stored credentials when a refresh is requested
        - User denied consent on the authorization page
    """
    pass


class InvalidOAuthStateError(AuthError):
    """
    Raised when the state returned by the redirect does not match the one
    generated for this authentication attempt.

    Always fatal to the attempt: no token exchange is performed.
    """

    def __init__(self, details: dict | None = None) -> None:
        super().__init__("Invalid OAuth state parameter", details)


class CallbackTimeoutError(AuthError):
    """Raised when no authorization redirect arrives before the deadline."""
    pass


class FetchError(SpotCuratorError):
    """
    Raised when a playlist page cannot be fetched or parsed.

    The details always include 'playlist_id' and 'offset' so the user knows
    where a retried sync will resume.
    """

    def __init__(
        self,
        message: str,
        playlist_id: str,
        offset: int,
        details: dict | None = None
    ) -> None:
        merged = {"playlist_id": playlist_id, "offset": offset}
        merged.update(details or {})
        super().__init__(message, merged)
        self.playlist_id = playlist_id
        self.offset = offset


class PublishError(SpotCuratorError):
    """Raised when the publishing collaborator reports failure."""
    pass
