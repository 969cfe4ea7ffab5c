"""
Utility functions for yamusic-sync.

This module provides common helpers used across the application:
    - Artist locator parsing
    - File name sanitization for downloaded tracks
    - Path manipulation helpers

Usage:
    from yamusic_sync.utils import (
        extract_artist_id,
        sanitize_basename,
        ensure_directory
    )
"""

import re
import time
from pathlib import Path

from yamusic_sync.core.exceptions import ValidationError


ARTIST_ID_PATTERN = re.compile(r"artist/(\d+)")
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_\-]")
TRAVERSAL_SEQUENCES = ("../", "..\\")


def extract_artist_id(locator: str) -> int:
    """
    Extract the numeric artist ID from a Yandex Music locator.

    The ID is the digit sequence right after the first ``artist/`` segment,
    anything around it (scheme, host, trailing ``/tracks``, query) is ignored.

    Args:
        locator: Artist URL or any string containing ``artist/<digits>``.

    Returns:
        The artist ID as an integer.

    Raises:
        ValidationError: If no ``artist/<digits>`` sequence is present.

    Examples:
        extract_artist_id("https://music.yandex.ru/artist/36800/tracks")
        # Returns: 36800

        extract_artist_id("https://music.yandex.ru/album/123")
        # Raises ValidationError
    """
    match = ARTIST_ID_PATTERN.search(locator or "")
    if match is None:
        raise ValidationError(
            f"Invalid Yandex Music artist URL: {locator}",
            details={"locator": locator}
        )
    return int(match.group(1))


def sanitize_basename(name: str) -> str:
    """
    Restrict a file base name to ``[A-Za-z0-9_-]``.

    Every other character (spaces, dots, slashes, non-Latin letters) is
    replaced with an underscore. An empty result falls back to a name derived
    from the current time so the file always gets a name.

    Examples:
        sanitize_basename("Song: Title")   # "Song__Title"
        sanitize_basename("Кино")          # "____"
        sanitize_basename("")              # "track_1760891234"
    """
    safe_name = UNSAFE_FILENAME_CHARS.sub("_", name)
    if not safe_name:
        safe_name = f"track_{int(time.time())}"
    return safe_name


def format_track_basename(artist_id: int, title: str) -> str:
    """
    Build the base name of a downloaded track file.

    Format: ``<artist id>_<sanitized title>``. The downloader appends the
    extension.

    Example:
        format_track_basename(36800, "Группа крови")  # "36800_____________"
    """
    return f"{sanitize_basename(str(artist_id))}_{sanitize_basename(title)}"


def strip_path_traversal(path: str) -> str:
    """
    Remove parent-directory references and outer separators from a path.

    Stripping repeats until the value is stable, so nested tricks like
    ``....//`` cannot reassemble a ``../`` after one pass.

    Examples:
        strip_path_traversal("../../etc")      # "etc"
        strip_path_traversal("/music/../x/")   # "music/x"
    """
    previous = None
    while previous != path:
        previous = path
        for sequence in TRAVERSAL_SEQUENCES:
            path = path.replace(sequence, "")
    if path in ("..", "."):
        path = ""
    return path.strip("/\\")


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If the directory cannot be created.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds as "m:ss" or "h:mm:ss".

    Examples:
        format_duration(225)    # "3:45"
        format_duration(3750)   # "1:02:30"
        format_duration(-5)     # "0:00"
    """
    total = max(0, int(seconds))
    if total < 3600:
        return f"{total // 60}:{total % 60:02d}"
    hours = total // 3600
    minutes = (total % 3600) // 60
    return f"{hours}:{minutes:02d}:{total % 60:02d}"
