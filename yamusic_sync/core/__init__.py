"""
Core module for yamusic-sync.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite store for artists and tracks
    - logger: Logging system with multiple outputs

Usage:
    from yamusic_sync.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        YaMusicSyncError, ConfigError, StorageError
    )
"""

from yamusic_sync.core.config import (
    Config,
    DownloadConfig,
    OutputConfig,
    YandexConfig,
    load_config,
)
from yamusic_sync.core.database import Database
from yamusic_sync.core.exceptions import (
    ApiError,
    ConfigError,
    DownloadError,
    NotFoundError,
    StorageError,
    ValidationError,
    YaMusicSyncError,
)
from yamusic_sync.core.logger import (
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "YandexConfig",
    "OutputConfig",
    "DownloadConfig",
    "load_config",
    # Database
    "Database",
    # Exceptions
    "YaMusicSyncError",
    "ConfigError",
    "ValidationError",
    "NotFoundError",
    "ApiError",
    "StorageError",
    "DownloadError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_download_failure",
    "shutdown_logging",
]
