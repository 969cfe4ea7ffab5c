"""
yamusic-sync: Keep a local copy of Yandex Music artists.

This package synchronizes an artist's metadata and track list from the
Yandex Music API into a local SQLite database and, on request, downloads
the audio of tracks it has not seen before.

Architecture:
    A call to Synchronizer.synchronize() runs these steps:

    1. Parse the artist ID from the URL (artist/<digits>)
    2. Fetch artist metadata from the API (yandex/)
    3. Save the metadata in the database (core/)
    4. Reconcile tracks:
        - known artist: only remote tracks not stored yet are added
        - new artist: the whole remote list is stored, reusing tracks
          already known under another artist
    5. Optionally download new tracks (download/) as
       {artist_id}_{title}.mp3

Modules:
    core/       - Configuration, database, logging, exceptions
    yandex/     - Yandex Music API client and payload decoding
    download/   - Audio file download
    sync/       - Artist synchronization
    utils/      - URL parsing and file name helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        yms sync "https://music.yandex.ru/artist/36800"
        yms sync "https://music.yandex.ru/artist/36800" --download
        yms check

    Python API:
        from yamusic_sync import load_config, setup_logging, create_synchronizer

        config = load_config()
        setup_logging(config.output.directory)

        synchronizer = create_synchronizer(config)
        snapshot = synchronizer.synchronize("https://music.yandex.ru/artist/36800")
        print(snapshot.to_dict())

Configuration:
    Requires a config.yaml file in the current directory:

        yandex:
          token: "your_oauth_token"     # or YANDEX_MUSIC_TOKEN in .env

        output:
          directory: "~/Music/YandexSync"

        download:
          threads: 4
          on_error: skip

Dependencies:
    - requests: HTTP client for the API and file downloads
    - rich-click: CLI colors
    - tqdm: Progress bars
    - pyyaml: Configuration file parsing
    - python-dotenv: Token from .env
"""

__version__ = "0.1.0"
__author__ = "yamusic-sync"
__license__ = "MIT"

# Convenience imports for common usage
from yamusic_sync.core import (
    ApiError,
    Config,
    ConfigError,
    Database,
    DownloadError,
    NotFoundError,
    StorageError,
    ValidationError,
    YaMusicSyncError,
    get_logger,
    load_config,
    setup_logging,
)
from yamusic_sync.sync import Synchronizer, create_synchronizer
from yamusic_sync.yandex import Artist, ArtistSnapshot, Track, YandexMusicClient

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "setup_logging",
    "get_logger",
    # Exceptions
    "YaMusicSyncError",
    "ConfigError",
    "ValidationError",
    "NotFoundError",
    "ApiError",
    "StorageError",
    "DownloadError",
    # Sync
    "Synchronizer",
    "create_synchronizer",
    # Models
    "YandexMusicClient",
    "Artist",
    "ArtistSnapshot",
    "Track",
]
