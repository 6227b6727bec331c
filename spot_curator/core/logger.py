"""
Logging configuration for spot-curator.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible, colored formatting
    - log_full_<timestamp>.log: Complete log of all events (DEBUG and above)
    - log_errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - sync_failures_<timestamp>.log: Playlists whose sync stopped, with the
      offset a retry will resume from

Log File Locations:
    All log files are created in <data_directory>/logs. Each run gets its
    own timestamped files (no rotation).

Usage:
    from spot_curator.core.logger import setup_logging, get_logger

    setup_logging(config.storage.log_directory)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting sync")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes through tqdm.write().

    The sync command shows a tqdm bar while walking playlists; writing log
    lines with tqdm.write() keeps them above the bar instead of tearing it.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


class SyncFailureHandler(logging.Handler):
    """
    Handler that writes aborted playlist syncs to the sync failures report.

    Only records carrying the 'sync_failed_playlist' extra field are
    written, in a format meant to be read by a person deciding whether to
    retry:

        Coffee in the Morning (37i9dQZF1DX...)
        stopped at offset 40: Spotify returned 502

    Use log_sync_failure() to emit such records.

    Attributes:
        report_path: Path to the sync_failures log file.
        report_file: Open file handle, or None before open()/after close().
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "sync_failed_playlist"):
            return

        if self.report_file is None:
            return

        try:
            name = getattr(record, "sync_failed_playlist", "Unknown")
            spotify_id = getattr(record, "sync_failed_spotify_id", "")
            offset = getattr(record, "sync_failed_offset", None)
            reason = getattr(record, "sync_failed_reason", "")

            self.report_file.write(f"{name} ({spotify_id})\n")
            self.report_file.write(f"stopped at offset {offset}: {reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created. Created if
                 it does not exist.
        verbose: If True the console shows DEBUG records too.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Configure root logger level to DEBUG and drop existing handlers
        3. Console handler (TqdmLoggingHandler, colored, INFO or DEBUG)
        4. Full log file handler (DEBUG)
        5. Error-only file handler (ERROR+ via ErrorOnlyFilter)
        6. Sync failure report handler
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        log_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        log_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = SyncFailureHandler(log_dir / f"sync_failures_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # urllib3/spotipy are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("spotipy").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Loggers obtained before setup_logging() is called have no handlers of
    their own; records propagate to whatever the root logger has.
    """
    return logging.getLogger(name)


def log_sync_failure(
    logger: logging.Logger,
    playlist_name: str,
    spotify_id: str,
    offset: int,
    reason: str
) -> None:
    """
    Log a playlist sync that stopped before reaching the end.

    Emits an ERROR record with the extra fields SyncFailureHandler uses to
    append an entry to the sync failures report.
    """
    logger.error(
        f"Sync of '{playlist_name}' stopped at offset {offset}: {reason}",
        extra={
            "sync_failed_playlist": playlist_name,
            "sync_failed_spotify_id": spotify_id,
            "sync_failed_offset": offset,
            "sync_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush and close every handler on the root logger, then detach them.

    Called from the CLI's finally block.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
