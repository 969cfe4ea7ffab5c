"""
Exception classes for yamusic-sync.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary
with diagnostic context, so callers can show the message and log the rest.

Exception Hierarchy:
    YaMusicSyncError (base)
        ConfigError - Configuration file issues
        ValidationError - Bad artist locator
        NotFoundError - Artist unknown to the remote service
        ApiError - Yandex Music API transport/parsing issues
        StorageError - SQLite database issues
        DownloadError - Audio download issues

Lower-level exceptions (requests, sqlite3, OSError) are always wrapped
with ``raise ... from e`` so the original cause stays available in
``__cause__``.
"""


class YaMusicSyncError(Exception):
    """
    Base exception for all yamusic-sync errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional context (artist id, URL, ...).

    Example:
        try:
            synchronizer.synchronize(url)
        except YaMusicSyncError as e:
            logger.error(f"Sync failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary with context about the error.
                     Common keys include:
                     - 'artist_id': Yandex artist ID involved in the error
                     - 'track_id': Yandex track ID involved in the error
                     - 'url': URL that caused the error
                     - 'original_error': The underlying exception message
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(YaMusicSyncError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - Invalid YAML syntax
        - Missing token (neither in config.yaml nor YANDEX_MUSIC_TOKEN)
        - Invalid field values (e.g., zero download threads)
    """
    pass


class ValidationError(YaMusicSyncError):
    """
    Raised when user input cannot be interpreted.

    The main case is an artist locator without an ``artist/<digits>``
    segment, e.g. a track or album URL.
    """
    pass


class NotFoundError(YaMusicSyncError):
    """
    Raised when the remote service returns no data for an artist.

    The store is never touched when this is raised.
    """
    pass


class ApiError(YaMusicSyncError):
    """
    Raised when there's an issue with the Yandex Music API.

    Can be CRITICAL (auth failure) or NON-CRITICAL (track list fetch
    failure during an update pass, which degrades to stored state).

    Attributes:
        is_auth_error: True if the token was rejected (HTTP 401/403).
        is_rate_limit: True if the API answered HTTP 429.

    Example:
        raise ApiError(
            "Failed to fetch artist tracks: HTTP 500",
            details={'artist_id': 36800, 'status_code': 500}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class StorageError(YaMusicSyncError):
    """
    Raised when there's an issue with the SQLite database.

    This is a CRITICAL error: the synchronizer propagates it immediately.
    Writes completed before the failure stay persisted.

    Common causes:
        - Database file locked or corrupted
        - Schema version mismatch
        - Foreign key violation (track saved before its artist)
        - Disk full or permission denied
    """
    pass


class DownloadError(YaMusicSyncError):
    """
    Raised when there's an issue downloading a track file.

    Whether this stops the synchronization depends on the configured
    download failure policy ('raise' or 'skip').

    Common causes:
        - Download directory missing and not creatable, or not writable
        - Download URL could not be resolved
        - HTTP status other than 200
        - Connection dropped mid-stream
        - Disk full

    Example:
        raise DownloadError(
            "Failed to download file: HTTP status 410",
            details={'track_id': 123456, 'status_code': 410}
        )
    """
    pass
