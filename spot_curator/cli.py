"""
Command-line interface for spot-curator.

This module implements the CLI using Click; rich-click is used for the
help formatting and colors.

Commands:
    spot-curator auth                          Authorize access to Spotify
    spot-curator playlist add <name> <id>      Register a playlist to follow
    spot-curator playlist list                 Show registered playlists
    spot-curator tracks update                 Sync new tracks of all playlists
    spot-curator tracks pending                Show tracks not published yet

Options:
    --config <path>                            Use a specific config.yaml
    --verbose                                  Show debug output on the console
    --version                                  Show version and exit

Usage:
    # First run: authorize and register a playlist
    spot-curator auth
    spot-curator playlist add "Morning" "https://open.spotify.com/playlist/..."

    # Fetch whatever was added since the last run
    spot-curator tracks update

Exit codes:
    1    configuration error (or unexpected error)
    2    storage error
    3    authentication error (including CSRF state mismatch)
    4    playlist fetch error
    130  interrupted by user
"""

import sys
from pathlib import Path
from typing import Callable, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from spot_curator import __version__
from spot_curator.core.config import Config, load_config
from spot_curator.core.database import Database
from spot_curator.core.exceptions import (
    AuthError,
    ConfigError,
    FetchError,
    SpotCuratorError,
    StorageError,
)
from spot_curator.core.logger import get_logger, setup_logging, shutdown_logging
from spot_curator.spotify.auth import Authenticator
from spot_curator.spotify.client import PlaylistClient
from spot_curator.spotify.credentials import CredentialStore
from spot_curator.spotify.tokens import TokenExchanger
from spot_curator.sync.engine import PlaylistSyncEngine

logger = get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml if present)"
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show debug output on the console"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    verbose: bool,
    version: bool
) -> None:
    """
    spot-curator: Collect the tracks of your Spotify playlists.

    Follows a set of playlists and stores every track added to them, once,
    so they can later be picked for publishing.

    \b
    FIRST RUN:
        spot-curator auth                                 # Authorize in the browser
        spot-curator playlist add NAME SPOTIFY_ID         # Follow a playlist

    \b
    EVERY RUN:
        spot-curator tracks update                        # Fetch new tracks
        spot-curator tracks pending                       # Not yet published
    """
    if version:
        click.echo(f"spot-curator {__version__}")
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def auth(ctx: click.Context) -> None:
    """Authorize spot-curator to read your playlists."""
    def action(config: Config) -> None:
        Authenticator.from_config(config).authenticate()
        click.echo("Successfully authenticated!")

    _run(ctx, action)


@cli.group()
def playlist() -> None:
    """Manage followed playlists."""


@playlist.command("add")
@click.argument("name")
@click.argument("spotify_id", metavar="SPOTIFY_ID")
@click.pass_context
def playlist_add(ctx: click.Context, name: str, spotify_id: str) -> None:
    """
    Follow a playlist.

    SPOTIFY_ID may be the bare ID, a spotify:playlist: URI or an
    open.spotify.com playlist URL.
    """
    def action(config: Config) -> None:
        playlist_id = extract_playlist_id(spotify_id)
        with Database(config.storage.database_path) as database:
            added = database.add_playlist(playlist_id, name)
        click.echo(f"Added playlist {added.name} with id {added.spotify_id}")

    _run(ctx, action)


@playlist.command("list")
@click.pass_context
def playlist_list(ctx: click.Context) -> None:
    """Show followed playlists and how far each has been read."""
    def action(config: Config) -> None:
        with Database(config.storage.database_path) as database:
            playlists = database.get_playlists()
            if not playlists:
                click.echo("No playlists registered. Use 'spot-curator playlist add'.")
                return
            for item in playlists:
                offset = database.get_playlist_offset(item.id)
                stored = database.count_tracks(item.id)
                click.echo(
                    f"{item.name} ({item.spotify_id}): offset {offset}, {stored} tracks stored"
                )

    _run(ctx, action)


@cli.group()
def tracks() -> None:
    """Fetch and inspect stored tracks."""


@tracks.command("update")
@click.pass_context
def tracks_update(ctx: click.Context) -> None:
    """Fetch tracks added to every followed playlist since the last run."""
    def action(config: Config) -> None:
        store = CredentialStore(
            config.storage.credentials_file, config.storage.credentials_section
        )
        exchanger = TokenExchanger(
            client_id=config.spotify.client_id,
            client_secret=config.spotify.client_secret,
            redirect_uri=config.spotify.redirect_uri,
            store=store,
            timeout=config.sync.request_timeout,
        )
        access_token = exchanger.refresh_stored()
        client = PlaylistClient.from_access_token(
            access_token,
            page_size=config.sync.page_size,
            timeout=config.sync.request_timeout,
        )

        with Database(config.storage.database_path) as database:
            engine = PlaylistSyncEngine(database, client, show_progress=True)
            reports = engine.sync_all()

        if not reports:
            click.echo("No playlists registered. Use 'spot-curator playlist add'.")
            return
        for report in reports:
            click.echo(report.summary())
        click.echo(f"{sum(r.inserted for r in reports)} new tracks stored")

    _run(ctx, action)


@tracks.command("pending")
@click.pass_context
def tracks_pending(ctx: click.Context) -> None:
    """Show stored tracks that have not been published yet."""
    def action(config: Config) -> None:
        with Database(config.storage.database_path) as database:
            pending = database.get_tracks_eligible_for_publishing()
        for track in pending:
            click.echo(f"{track.name}  {track.url}")
        click.echo(f"{len(pending)} tracks waiting to be published")

    _run(ctx, action)


def extract_playlist_id(value: str) -> str:
    """
    Extract the playlist ID from a URL, a spotify: URI or a bare ID.

    Raises:
        ConfigError: If a URL or URI does not point to a playlist.
    """
    value = value.strip()

    if value.startswith("spotify:"):
        parts = value.split(":")
        if len(parts) != 3 or parts[1] != "playlist" or not parts[2]:
            raise ConfigError(f"Not a playlist URI: {value}")
        return parts[2]

    if "spotify.com" in value:
        path = value.split("?")[0].rstrip("/")
        segments = path.split("/")
        if len(segments) < 2 or segments[-2] != "playlist":
            raise ConfigError(f"Not a playlist URL: {value}")
        return segments[-1]

    if not value:
        raise ConfigError("Playlist ID must not be empty")
    return value


def _run(ctx: click.Context, action: Callable[[Config], None]) -> None:
    """
    Load configuration, set up logging and run one command.

    Maps every error family to its exit code and always shuts logging down.
    """
    options = ctx.find_root().obj or {}

    try:
        config = load_config(options.get("config_path"))
        setup_logging(config.storage.log_directory, verbose=options.get("verbose", False))
        action(config)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except StorageError as e:
        click.echo(f"Storage error: {e.message}", err=True)
        logger.error(f"Storage error: {e.message}", exc_info=True)
        sys.exit(2)

    except AuthError as e:
        click.echo(f"Authentication error: {e.message}", err=True)
        logger.error(f"Authentication error: {e.message}", exc_info=True)
        sys.exit(3)

    except FetchError as e:
        click.echo(f"Fetch error: {e.message}", err=True)
        click.echo("Run 'spot-curator tracks update' again to resume.", err=True)
        logger.error(f"Fetch error: {e.message}", exc_info=True)
        sys.exit(4)

    except SpotCuratorError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-curator` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
