"""
Logging configuration for yamusic-sync.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - download_failures.log: Tracks whose audio file could not be downloaded

Everything shown on screen is also saved to file, then filtered into
specialized files.

Log File Locations:
    All log files are created in <output directory>/logs, with a timestamp
    in the file name so every run keeps its own set.

Usage:
    from yamusic_sync.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting synchronization")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
DOWNLOAD_FAILURES_FILENAME = "download_failures"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at DEBUG
NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool", "requests")


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name on console output.

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
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    tqdm redraws its bars in place with carriage returns; plain writes to
    stderr corrupt them. tqdm.write() prints the message above any active
    bar instead.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class DownloadFailedTrackHandler(logging.Handler):
    """
    Handler that captures download failures for the download report file.

    Records carrying the ``download_failed_*`` extra fields are written to
    download_failures.log in a simple, human-readable format:

        36800_Song_Title.mp3 (track 123456)
        HTTP status 410

        36800_Another_Song.mp3 (track 123457)
        No download URL available

    Records without these fields are ignored.

    Usage:
        Use log_download_failure() rather than setting the extras by hand.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "download_failed_track_id"):
            return

        if self.report_file is None:
            return

        try:
            track_id = getattr(record, "download_failed_track_id")
            file_name = getattr(record, "download_failed_file_name", "")
            reason = getattr(record, "download_failed_reason", "")

            self.acquire()
            try:
                self.report_file.write(f"{file_name}.mp3 (track {track_id})\n")
                self.report_file.write(f"{reason}\n\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only lets ERROR and CRITICAL records through."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(output_dir: Path, console_level: int = logging.INFO) -> Path:
    """
    Configure the logging system for the application.

    Call ONCE at application startup, after the configuration is loaded.

    Args:
        output_dir: Directory where the 'logs' subdirectory is created.
        console_level: Minimum level shown on the console.

    Returns:
        Path of the logs directory.

    Behavior:
        1. Create output_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG and drop existing handlers
        3. Console handler (TqdmLoggingHandler, colored)
        4. Full log file handler (DEBUG)
        5. Error-only log file handler
        6. Download failure report handler
        7. Quiet down noisy third-party loggers

    Thread Safety:
        NOT thread-safe. Call it from the main thread before starting
        any download workers.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = logs_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = logs_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    download_failures_path = logs_dir / f"{DOWNLOAD_FAILURES_FILENAME}_{timestamp}.log"
    download_handler = DownloadFailedTrackHandler(download_failures_path)
    download_handler.open()
    root_logger.addHandler(download_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called have no handlers
        of their own; records propagate to whatever the root logger has.
    """
    return logging.getLogger(name)


def format_sync_summary(artist_name: str, total: int, new: int, downloaded: int) -> str:
    """Format the end-of-run summary line with colors."""
    return (
        f"{Colors.CYAN}{artist_name}{Colors.RESET}: "
        f"{total} tracks "
        f"(new: {Colors.GREEN}{new}{Colors.RESET}, "
        f"downloaded: {Colors.GREEN}{downloaded}{Colors.RESET})"
    )


def log_download_failure(
    logger: logging.Logger,
    track_id: int,
    file_name: str,
    error_message: str
) -> None:
    """
    Log a track whose download failed.

    Attaches the extra fields that DownloadFailedTrackHandler picks up.

    Args:
        logger: The logger to use for the message.
        track_id: Yandex track ID.
        file_name: Base file name the track would have been saved under.
        error_message: Why the download failed.

    Example:
        log_download_failure(
            logger,
            track_id=123456,
            file_name="36800_Song_Title",
            error_message="HTTP status 410"
        )
    """
    logger.error(
        f"Download failed: {file_name} (track {track_id}) - {error_message}",
        extra={
            "download_failed_track_id": track_id,
            "download_failed_file_name": file_name,
            "download_failed_reason": error_message,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every handler of the root logger.

    Call in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
