"""
Track downloader for yamusic-sync.

This module resolves the file URL of a track through the Yandex Music
client and streams the audio to disk.

Directory Layout:
    output_directory/
    ├── database.db
    ├── logs/
    └── downloads/                    # configurable subdirectory
        ├── 36800_Gruppa_krovi.mp3
        └── 36800_Kukushka.mp3

File Naming:
    <artist id>_<title>.mp3, restricted to [A-Za-z0-9_-]. The synchronizer
    builds the base name, the downloader sanitizes it again and adds the
    extension.

Usage:
    from yamusic_sync.download import TrackDownloader

    downloader = TrackDownloader(client, output_dir=Path("~/Music"))
    path = downloader.download(123456, "36800_Song_Title")
    if path is None:
        print("No download URL available")
"""

import os
from pathlib import Path

import requests

from yamusic_sync.core.config import Config, DEFAULT_SUBDIRECTORY, DEFAULT_TIMEOUT
from yamusic_sync.core.exceptions import ApiError, DownloadError
from yamusic_sync.core.logger import get_logger
from yamusic_sync.utils import ensure_directory, sanitize_basename, strip_path_traversal
from yamusic_sync.yandex.client import YandexMusicClient

logger = get_logger(__name__)


FILE_EXTENSION = ".mp3"
CHUNK_SIZE = 64 * 1024


class TrackDownloader:
    """
    Downloads track files into a fixed, validated download root.

    The root is <output_dir>/<subdirectory>. Parent-directory references in
    the subdirectory are stripped, the directory is created if needed and
    must be writable; otherwise construction fails with DownloadError.

    Attributes:
        download_dir: Absolute path of the download root.
        timeout: Per-request timeout in seconds for file transfers.
    """

    def __init__(
        self,
        provider: YandexMusicClient,
        output_dir: Path,
        subdirectory: str = DEFAULT_SUBDIRECTORY,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._provider = provider
        self._session = session or requests.Session()
        self.timeout = timeout
        self.download_dir = self._validate_download_dir(output_dir, subdirectory)

    @classmethod
    def from_config(cls, config: Config, provider: YandexMusicClient) -> "TrackDownloader":
        return cls(
            provider=provider,
            output_dir=config.output.directory,
            subdirectory=config.download.subdirectory,
            timeout=config.yandex.timeout
        )

    def close(self) -> None:
        """Close the file transfer session."""
        self._session.close()

    def download(self, track_id: int, desired_base_name: str) -> str | None:
        """
        Download one track.

        Args:
            track_id: Yandex track ID.
            desired_base_name: File name without extension; sanitized here.

        Returns:
            Local file path as a string, or None if the service offers no
            download URL for the preferred codec.

        Raises:
            DownloadError: If the URL cannot be resolved (API failure), the
                           server answers anything but 200, or the transfer
                           or the write fails. A partial file is removed.
        """
        try:
            url = self._provider.resolve_download_url(track_id)
        except ApiError as e:
            raise DownloadError(
                f"Failed to resolve download URL: {e.message}",
                details={"track_id": track_id, "original_error": str(e)}
            ) from e

        if not url:
            logger.warning(f"No download URL available for track {track_id}")
            return None

        file_name = sanitize_basename(desired_base_name)
        file_path = self.download_dir / f"{file_name}{FILE_EXTENSION}"

        self._download_file(url, file_path, track_id)
        logger.debug(f"Downloaded track {track_id} to {file_path}")
        return str(file_path)

    def _download_file(self, url: str, file_path: Path, track_id: int) -> None:
        """Stream url into file_path."""
        try:
            response = self._session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(
                f"Failed to download file: {e}",
                details={"track_id": track_id, "original_error": str(e)}
            ) from e

        try:
            if response.status_code != 200:
                raise DownloadError(
                    f"Failed to download file: HTTP status {response.status_code}",
                    details={"track_id": track_id, "status_code": response.status_code}
                )

            with open(file_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
        except (requests.RequestException, OSError) as e:
            file_path.unlink(missing_ok=True)
            raise DownloadError(
                f"Failed to download file: {e}",
                details={"track_id": track_id, "path": str(file_path), "original_error": str(e)}
            ) from e
        finally:
            response.close()

    @staticmethod
    def _validate_download_dir(output_dir: Path, subdirectory: str) -> Path:
        """
        Build, create and check the download root.

        Raises:
            DownloadError: If the directory cannot be created or written.
        """
        subdirectory = strip_path_traversal(subdirectory)
        root = Path(output_dir).expanduser()
        if subdirectory:
            root = root / subdirectory

        try:
            ensure_directory(root)
        except OSError as e:
            raise DownloadError(
                f"Failed to create download directory: {root}",
                details={"path": str(root), "original_error": str(e)}
            ) from e

        if not os.access(root, os.W_OK):
            raise DownloadError(
                f"Download directory is not writable: {root}",
                details={"path": str(root)}
            )

        return root.resolve()
