"""
Configuration management for spot-curator.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, with Spotify credentials
and the database location optionally supplied through the environment
(a .env file is honoured via python-dotenv).

Configuration File Location:
    config.yaml in the current working directory, or an explicit path
    passed with --config. The file is optional when the environment
    provides SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET.

Environment Variables (override file values):
    SPOTIFY_CLIENT_ID
    SPOTIFY_CLIENT_SECRET
    DATABASE_URL        Path to the SQLite database file

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://localhost:8000/auth"
      scope: "playlist-read-private"

    storage:
      data_directory: "~/.spot-curator"
      database: "~/.spot-curator/curator.db"
      credentials_file: "~/.spotify/credentials"
      credentials_section: "default"

    auth:
      callback_timeout: 300
      open_browser: true

    sync:
      page_size: 100
      request_timeout: 30
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from spot_curator.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://localhost:8000/auth"
DEFAULT_SCOPE = "playlist-read-private"
DEFAULT_DATA_DIRECTORY = "~/.spot-curator"
DEFAULT_DATABASE_NAME = "curator.db"
DEFAULT_CREDENTIALS_FILE = "~/.spotify/credentials"
DEFAULT_CREDENTIALS_SECTION = "default"
DEFAULT_CALLBACK_TIMEOUT = 300
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100
DEFAULT_REQUEST_TIMEOUT = 30

_LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials and OAuth parameters.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: Registered redirect URI; must point at a loopback
                      address because the callback listener binds there.
        scope: Space separated OAuth scopes.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE

    @property
    def callback_host(self) -> str:
        return urlparse(self.redirect_uri).hostname or "localhost"

    @property
    def callback_port(self) -> int:
        return urlparse(self.redirect_uri).port or 80

    @property
    def callback_path(self) -> str:
        return urlparse(self.redirect_uri).path or "/"


@dataclass(frozen=True)
class StorageConfig:
    """
    Local storage locations.

    Attributes:
        data_directory: Root for the database and the logs directory.
        database_path: SQLite database file.
        credentials_file: Section-based key/value file holding the tokens.
        credentials_section: Section name inside credentials_file.
    """
    data_directory: Path
    database_path: Path
    credentials_file: Path
    credentials_section: str = DEFAULT_CREDENTIALS_SECTION

    @property
    def log_directory(self) -> Path:
        return self.data_directory / "logs"


@dataclass(frozen=True)
class AuthConfig:
    """
    Authentication flow behaviour.

    Attributes:
        callback_timeout: Seconds to wait for the authorization redirect.
        open_browser: Whether to open the authorization page automatically.
    """
    callback_timeout: float = DEFAULT_CALLBACK_TIMEOUT
    open_browser: bool = True


@dataclass(frozen=True)
class SyncConfig:
    """
    Playlist synchronization behaviour.

    Attributes:
        page_size: Items requested per page (Spotify allows at most 100).
        request_timeout: Seconds before a Spotify HTTP request is abandoned.
    """
    page_size: int = DEFAULT_PAGE_SIZE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and passed explicitly to every component that
    needs part of it; nothing reads configuration from global state.
    """
    spotify: SpotifyConfig
    storage: StorageConfig
    auth: AuthConfig
    sync: SyncConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file. If None,
                     config.yaml in the current working directory is used
                     when it exists; otherwise only the environment and
                     defaults apply.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit file is missing, the YAML is invalid,
                     credentials are absent, or a value is out of range.
    """
    load_dotenv()

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_yaml(config_path)
    else:
        default_path = Path.cwd() / CONFIG_FILENAME
        if default_path.exists():
            raw_config = _read_yaml(default_path)

    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}),
        storage=_parse_storage_config(raw_config.get("storage") or {}),
        auth=_parse_auth_config(raw_config.get("auth") or {}),
        sync=_parse_sync_config(raw_config.get("sync") or {}),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _validate_config(raw_config: dict[str, Any]) -> None:
    """Every present section must be a mapping."""
    for section in ("spotify", "storage", "auth", "sync"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse the Spotify section, letting the environment override it.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty,
                     or redirect_uri is not a loopback http URL.
    """
    client_id = os.environ.get("SPOTIFY_CLIENT_ID") or spotify_section.get("client_id", "")
    client_secret = (
        os.environ.get("SPOTIFY_CLIENT_SECRET") or spotify_section.get("client_secret", "")
    )

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be set in config.yaml or SPOTIFY_CLIENT_ID",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be set in config.yaml or SPOTIFY_CLIENT_SECRET",
            details={"field": "spotify.client_secret"}
        )

    redirect_uri = spotify_section.get("redirect_uri", DEFAULT_REDIRECT_URI)
    _validate_redirect_uri(redirect_uri)

    scope = spotify_section.get("scope", DEFAULT_SCOPE)
    if not isinstance(scope, str) or not scope.strip():
        raise ConfigError(
            "'spotify.scope' must be a non-empty string",
            details={"field": "spotify.scope"}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri,
        scope=scope.strip()
    )


def _validate_redirect_uri(redirect_uri: Any) -> None:
    if not isinstance(redirect_uri, str):
        raise ConfigError(
            "'spotify.redirect_uri' must be a string",
            details={"field": "spotify.redirect_uri"}
        )

    parsed = urlparse(redirect_uri)
    if parsed.scheme != "http" or parsed.hostname not in _LOOPBACK_HOSTS:
        raise ConfigError(
            "'spotify.redirect_uri' must be an http URL on a loopback host "
            "(e.g. http://localhost:8000/auth)",
            details={"field": "spotify.redirect_uri", "value": redirect_uri}
        )
    if not parsed.path or parsed.path == "/":
        raise ConfigError(
            "'spotify.redirect_uri' must include a callback path",
            details={"field": "spotify.redirect_uri", "value": redirect_uri}
        )


def _expand_path(value: Any, field_name: str) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    return Path(value.strip()).expanduser().resolve()


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse the storage section.

    DATABASE_URL (commonly set in a .env file) wins
    over storage.database. A "sqlite://" prefix is tolerated.
    """
    data_directory = _expand_path(
        storage_section.get("data_directory", DEFAULT_DATA_DIRECTORY),
        "storage.data_directory"
    )

    database_raw = os.environ.get("DATABASE_URL") or storage_section.get("database")
    if database_raw is not None:
        if isinstance(database_raw, str) and database_raw.startswith("sqlite://"):
            database_raw = database_raw[len("sqlite://"):]
        database_path = _expand_path(database_raw, "storage.database")
    else:
        database_path = data_directory / DEFAULT_DATABASE_NAME

    credentials_file = _expand_path(
        storage_section.get("credentials_file", DEFAULT_CREDENTIALS_FILE),
        "storage.credentials_file"
    )

    section = storage_section.get("credentials_section", DEFAULT_CREDENTIALS_SECTION)
    if not isinstance(section, str) or not section.strip():
        raise ConfigError(
            "'storage.credentials_section' must be a non-empty string",
            details={"field": "storage.credentials_section"}
        )

    return StorageConfig(
        data_directory=data_directory,
        database_path=database_path,
        credentials_file=credentials_file,
        credentials_section=section.strip()
    )


def _parse_auth_config(auth_section: dict[str, Any]) -> AuthConfig:
    timeout = auth_section.get("callback_timeout", DEFAULT_CALLBACK_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'auth.callback_timeout' must be a positive number of seconds",
            details={"field": "auth.callback_timeout", "value": timeout}
        )

    open_browser = auth_section.get("open_browser", True)
    if not isinstance(open_browser, bool):
        raise ConfigError(
            "'auth.open_browser' must be true or false",
            details={"field": "auth.open_browser", "value": open_browser}
        )

    return AuthConfig(callback_timeout=timeout, open_browser=open_browser)


def _parse_sync_config(sync_section: dict[str, Any]) -> SyncConfig:
    page_size = sync_section.get("page_size", DEFAULT_PAGE_SIZE)
    if (
        isinstance(page_size, bool)
        or not isinstance(page_size, int)
        or not 1 <= page_size <= MAX_PAGE_SIZE
    ):
        raise ConfigError(
            f"'sync.page_size' must be an integer between 1 and {MAX_PAGE_SIZE}",
            details={"field": "sync.page_size", "value": page_size}
        )

    request_timeout = sync_section.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
    if (
        isinstance(request_timeout, bool)
        or not isinstance(request_timeout, (int, float))
        or request_timeout <= 0
    ):
        raise ConfigError(
            "'sync.request_timeout' must be a positive number of seconds",
            details={"field": "sync.request_timeout", "value": request_timeout}
        )

    return SyncConfig(page_size=page_size, request_timeout=request_timeout)
