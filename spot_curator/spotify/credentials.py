"""
Persistent storage of the Spotify OAuth tokens.

Tokens live in a small INI-style file (default ~/.spotify/credentials):

    [default]
    access_token = BQD...
    refresh_token = AQC...

Writes are atomic: the new content goes to a temporary file in the same
directory, is fsynced, and then replaces the old file with os.replace().
A crash mid-write leaves the previous file untouched, so a later load()
never sees one token updated and the other stale. Other sections and keys
in the file are preserved.
"""

import configparser
import os
import tempfile
from pathlib import Path

from spot_curator.core.exceptions import StorageError
from spot_curator.core.logger import get_logger
from spot_curator.spotify.models import Credentials

logger = get_logger(__name__)


ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


class CredentialStore:
    """
    Load and save the single local credential set.

    Args:
        path: Credentials file location.
        section: Section holding the two tokens.
    """

    def __init__(self, path: Path, section: str = "default") -> None:
        self.path = path
        self.section = section

    def _read(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        if not self.path.exists():
            return parser
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                parser.read_file(f)
        except (OSError, configparser.Error) as e:
            raise StorageError(
                f"Failed to read credentials file: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e
        return parser

    def load(self) -> Credentials | None:
        """
        Read the stored tokens.

        Returns:
            Credentials, or None when the file, the section or either token
            is missing.

        Raises:
            StorageError: If the file exists but cannot be read or parsed.
        """
        parser = self._read()
        if not parser.has_section(self.section):
            return None

        access_token = parser.get(self.section, ACCESS_TOKEN_KEY, fallback="")
        refresh_token = parser.get(self.section, REFRESH_TOKEN_KEY, fallback="")
        if not access_token or not refresh_token:
            logger.warning(f"Credentials section [{self.section}] is incomplete")
            return None

        return Credentials(access_token=access_token, refresh_token=refresh_token)

    def save(self, credentials: Credentials) -> None:
        """
        Persist both tokens atomically.

        Raises:
            StorageError: If the directory or file cannot be written.
        """
        parser = self._read()
        if not parser.has_section(self.section):
            parser.add_section(self.section)
        parser.set(self.section, ACCESS_TOKEN_KEY, credentials.access_token)
        parser.set(self.section, REFRESH_TOKEN_KEY, credentials.refresh_token)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
        except OSError as e:
            raise StorageError(
                f"Failed to prepare credentials file: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                parser.write(f)
                f.flush()
                os.fsync(f.fileno())
            # Owner read/write only; chmod is a no-op on Windows
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to write credentials file: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e

        logger.debug(f"Saved credentials to {self.path}")
