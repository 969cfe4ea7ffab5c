"""
Command-line interface for yamusic-sync.

This module implements the CLI using Click, providing the commands for
synchronizing Yandex Music artists into the local database.
rich-click is used for the output colors.

Commands:
    yms sync <artist_url>               Sync artist metadata and tracks
    yms sync <artist_url> --download    Also download new tracks
    yms check                           Diagnose configuration and access

Options:
    --config <path>                     Use a config file other than ./config.yaml
    --json                              Print the synchronized artist as JSON

Usage:
    # Sync metadata only
    yms sync "https://music.yandex.ru/artist/36800"

    # Sync and download tracks not seen before
    yms sync "https://music.yandex.ru/artist/36800/tracks" --download

    # Check token, database and download directory
    yms check

Exit Codes:
    0   Success
    1   Any yamusic-sync error (configuration, API, storage, download)
        or a failed diagnostic check
    130 Interrupted by user
"""

import json
import sys
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from yamusic_sync import __version__
from yamusic_sync.core import (
    ApiError,
    Config,
    ConfigError,
    Database,
    YaMusicSyncError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from yamusic_sync.core.logger import format_sync_summary
from yamusic_sync.download import TrackDownloader
from yamusic_sync.sync import Synchronizer, create_synchronizer
from yamusic_sync.utils import ensure_directory, format_duration
from yamusic_sync.yandex import ArtistSnapshot, YandexMusicClient

logger = get_logger(__name__)


CONFIG_OPTION_HELP = "Path to config.yaml (default: ./config.yaml)"


@click.group()
@click.version_option(__version__, prog_name="yamusic-sync")
def cli() -> None:
    """
    yamusic-sync: Keep a local copy of Yandex Music artists.

    Stores artist metadata and track lists in a local SQLite database
    and optionally downloads the audio of new tracks.

    \b
    BASIC USAGE:
        yms sync "https://music.yandex.ru/artist/36800"              # Metadata only
        yms sync "https://music.yandex.ru/artist/36800" --download   # With audio
        yms check                                                    # Diagnostics
    """


@cli.command()
@click.argument("url", metavar="<artist-url>")
@click.option(
    "--download",
    is_flag=True,
    help="Download tracks that are new to the database"
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help=CONFIG_OPTION_HELP
)
@click.option(
    "--json", "as_json",
    is_flag=True,
    help="Print the synchronized artist and tracks as JSON"
)
def sync(url: str, download: bool, config_path: Optional[Path], as_json: bool) -> None:
    """
    Synchronize one artist.

    The first run stores the artist and its whole track list. Later runs
    add only tracks that appeared since, leaving stored tracks untouched.
    """
    synchronizer: Synchronizer | None = None

    try:
        config = load_config(config_path)

        setup_logging(config.output.directory)
        logger.info("yamusic-sync starting")

        synchronizer = create_synchronizer(config, show_progress=not as_json)
        synchronizer.provider.verify()

        snapshot = synchronizer.synchronize(url, download=download)

        if as_json:
            click.echo(json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2))
        else:
            _print_snapshot(snapshot)
            _print_stats(synchronizer.database)

        logger.info("yamusic-sync completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except ApiError as e:
        click.echo(f"Yandex Music error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check yandex.token in config.yaml or YANDEX_MUSIC_TOKEN in .env", err=True)
        logger.error(f"Yandex Music error: {e.message}", exc_info=True)
        sys.exit(1)

    except YaMusicSyncError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    finally:
        if synchronizer is not None:
            synchronizer.close()
        shutdown_logging()


@cli.command()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help=CONFIG_OPTION_HELP
)
def check(config_path: Optional[Path]) -> None:
    """
    Diagnose configuration, database, download directory and token.

    Every check is reported; the exit code is 1 if any of them failed.
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        _report(False, "Configuration", e.message)
        sys.exit(1)

    _report(True, "Configuration", str(config_path or Path.cwd() / "config.yaml"))
    _report(True, "Token", f"present ({len(config.yandex.token)} characters)")

    results = [
        _check_database(config),
        _check_download_directory(config),
        _check_token(config),
    ]

    if not all(results):
        sys.exit(1)


# =============================================================================
# Diagnostics
# =============================================================================

def _report(ok: bool, name: str, detail: str) -> None:
    status = click.style("OK  ", fg="green") if ok else click.style("FAIL", fg="red")
    click.echo(f"[{status}] {name}: {detail}")


def _check_database(config: Config) -> bool:
    try:
        ensure_directory(config.output.database.parent)
        with Database(config.output.database) as database:
            tables = database.list_tables()
    except (YaMusicSyncError, OSError) as e:
        _report(False, "Database", str(e))
        return False

    _report(True, "Database", f"{config.output.database} (tables: {', '.join(tables)})")
    return True


def _check_download_directory(config: Config) -> bool:
    provider = YandexMusicClient.from_config(config)
    try:
        downloader = TrackDownloader.from_config(config, provider)
    except YaMusicSyncError as e:
        _report(False, "Download directory", e.message)
        return False
    finally:
        provider.close()

    downloader.close()
    _report(True, "Download directory", f"{downloader.download_dir} is writable")
    return True


def _check_token(config: Config) -> bool:
    provider = YandexMusicClient.from_config(config)
    try:
        account = provider.verify()
    except ApiError as e:
        _report(False, "Yandex Music API", e.message)
        return False
    finally:
        provider.close()

    _report(True, "Yandex Music API", f"token accepted (uid {account.get('uid')})")
    return True


# =============================================================================
# Output
# =============================================================================

def _print_snapshot(snapshot: ArtistSnapshot) -> None:
    """Log the synchronized tracks, marking new ones, then the summary line."""
    for track in snapshot.tracks:
        marker = "+" if track.id in snapshot.new_track_ids else " "
        logger.debug(f"{marker} {track.id:>10}  {format_duration(track.duration_seconds)}  {track.title}")

    downloaded = sum(
        1 for track in snapshot.tracks
        if track.id in snapshot.new_track_ids and track.local_path
    )
    logger.info(format_sync_summary(
        snapshot.artist.name,
        total=len(snapshot.tracks),
        new=len(snapshot.new_track_ids),
        downloaded=downloaded
    ))


def _print_stats(database: Database) -> None:
    """Print global database statistics."""
    stats = database.get_stats()

    logger.info("=" * 60)
    logger.info("DATABASE STATISTICS")
    logger.info("=" * 60)
    logger.info(f"Artists:           {stats['artists']}")
    logger.info(f"Tracks:            {stats['tracks']}")
    logger.info(f"Downloaded:        {stats['downloaded_tracks']}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `yms` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
