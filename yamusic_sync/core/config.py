"""
Configuration management for yamusic-sync.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Yandex Music API token and connection settings
    - Output directory (database, logs and downloads live below it)
    - Download behavior (subdirectory, codec, threads, failure policy)

The token may also be supplied through the YANDEX_MUSIC_TOKEN environment
variable, which is read from a .env file in the working directory if present.
The environment variable wins over the config file.

Example config.yaml:
    yandex:
      token: "your_oauth_token"

    output:
      directory: "~/Music/YandexSync"
      database: "database.db"

    download:
      subdirectory: "downloads"
      codec: "mp3"
      threads: 1
      on_error: "raise"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from yamusic_sync.core.exceptions import ConfigError


CONFIG_FILENAME = "config.yaml"
TOKEN_ENV_VAR = "YANDEX_MUSIC_TOKEN"

DEFAULT_BASE_URL = "https://api.music.yandex.net"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 200
DEFAULT_DATABASE = "database.db"
DEFAULT_SUBDIRECTORY = "downloads"
DEFAULT_CODEC = "mp3"

DOWNLOAD_ERROR_POLICIES = ("raise", "skip")


@dataclass(frozen=True)
class YandexConfig:
    """
    Yandex Music API configuration.

    Attributes:
        token: OAuth token sent as ``Authorization: OAuth <token>``.
        base_url: API root, without trailing slash.
        timeout: Per-request timeout in seconds.
        page_size: Number of tracks requested for an artist track list.
    """
    token: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class OutputConfig:
    """
    Output location configuration.

    Attributes:
        directory: Absolute root for everything the tool writes.
                   ~ is expanded. Created on demand.
        database: Absolute path of the SQLite database file.
                  Relative values in config.yaml are resolved against
                  ``directory``.
    """
    directory: Path
    database: Path


@dataclass(frozen=True)
class DownloadConfig:
    """
    Download behavior configuration.

    Attributes:
        subdirectory: Folder under the output directory receiving audio files.
                      Path traversal sequences are stripped by the downloader.
        codec: Preferred codec; the highest bitrate of this codec is chosen.
        threads: Size of the worker pool used for downloading new tracks.
                 1 keeps processing strictly sequential.
        on_error: "raise" stops the synchronization on the first failed
                  download, "skip" records the failure and continues.
    """
    subdirectory: str = DEFAULT_SUBDIRECTORY
    codec: str = DEFAULT_CODEC
    threads: int = 1
    on_error: str = "raise"


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        print(f"Database: {config.output.database}")
        print(f"Using {config.download.threads} download threads")
    """
    yandex: YandexConfig
    output: OutputConfig
    download: DownloadConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to the config file.
                     If None, looks for config.yaml in the current directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid YAML,
                     lacks required fields or contains invalid values.

    Behavior:
        1. Load .env (if present) into the environment
        2. Read and parse the YAML file
        3. Validate the structure
        4. Parse each section, applying defaults
    """
    load_dotenv()

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

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

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    output_config = _parse_output_config(raw_config["output"])
    return Config(
        yandex=_parse_yandex_config(raw_config.get("yandex")),
        output=output_config,
        download=_parse_download_config(raw_config.get("download")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """Check required sections exist and every present section is a mapping."""
    if "output" not in raw_config:
        raise ConfigError(
            "Missing required section: 'output'",
            details={"missing_section": "output"}
        )

    for section in ("yandex", "output", "download"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_yandex_config(yandex_section: dict[str, Any] | None) -> YandexConfig:
    """
    Parse the 'yandex' section.

    The token comes from YANDEX_MUSIC_TOKEN if set, otherwise from
    yandex.token. A missing token is an error.
    """
    section = yandex_section or {}

    token = os.environ.get(TOKEN_ENV_VAR) or section.get("token", "")
    if not isinstance(token, str) or not token.strip():
        raise ConfigError(
            f"'yandex.token' must be a non-empty string (or set {TOKEN_ENV_VAR})",
            details={"field": "yandex.token"}
        )

    base_url = section.get("base_url", DEFAULT_BASE_URL)
    if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
        raise ConfigError(
            "'yandex.base_url' must be an http(s) URL",
            details={"field": "yandex.base_url", "value": base_url}
        )

    timeout = section.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'yandex.timeout' must be a positive number",
            details={"field": "yandex.timeout", "value": timeout}
        )

    page_size = section.get("page_size", DEFAULT_PAGE_SIZE)
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise ConfigError(
            "'yandex.page_size' must be a positive integer",
            details={"field": "yandex.page_size", "value": page_size}
        )

    return YandexConfig(
        token=token.strip(),
        base_url=base_url.rstrip("/"),
        timeout=float(timeout),
        page_size=page_size
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse the 'output' section.

    Expands ~ and makes the directory absolute. Does NOT create it
    (that happens when logging and the database are initialized).
    """
    directory = output_section.get("directory", "")

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    path = Path(directory.strip()).expanduser().resolve()

    database_raw = output_section.get("database", DEFAULT_DATABASE)
    if not isinstance(database_raw, str) or not database_raw.strip():
        raise ConfigError(
            "'output.database' must be a non-empty string",
            details={"field": "output.database"}
        )

    database_path = Path(database_raw.strip()).expanduser()
    if not database_path.is_absolute():
        database_path = path / database_path

    return OutputConfig(directory=path, database=database_path)


def _parse_download_config(download_section: dict[str, Any] | None) -> DownloadConfig:
    """
    Parse the 'download' section, applying defaults for anything missing.

    Defaults: subdirectory "downloads", codec "mp3", threads 1,
    on_error "raise".
    """
    if download_section is None:
        return DownloadConfig()

    subdirectory = download_section.get("subdirectory", DEFAULT_SUBDIRECTORY)
    if not isinstance(subdirectory, str) or not subdirectory.strip():
        raise ConfigError(
            "'download.subdirectory' must be a non-empty string",
            details={"field": "download.subdirectory"}
        )

    codec = download_section.get("codec", DEFAULT_CODEC)
    if not isinstance(codec, str) or not codec.strip():
        raise ConfigError(
            "'download.codec' must be a non-empty string",
            details={"field": "download.codec"}
        )

    threads = download_section.get("threads", 1)
    if isinstance(threads, bool) or not isinstance(threads, int) or threads < 1:
        raise ConfigError(
            "'download.threads' must be a positive integer",
            details={"field": "download.threads", "value": threads}
        )

    on_error = download_section.get("on_error", "raise")
    if on_error not in DOWNLOAD_ERROR_POLICIES:
        raise ConfigError(
            f"'download.on_error' must be one of {', '.join(DOWNLOAD_ERROR_POLICIES)}",
            details={"field": "download.on_error", "value": on_error}
        )

    return DownloadConfig(
        subdirectory=subdirectory.strip(),
        codec=codec.strip().lower(),
        threads=threads,
        on_error=on_error
    )
