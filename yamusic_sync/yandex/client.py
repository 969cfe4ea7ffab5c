"""
Yandex Music API client for yamusic-sync.

This module wraps the JSON API of Yandex Music with a requests.Session and
exposes the three operations the synchronizer and the downloader need:

    fetch_artist(artist_id)         -> Artist | None
    fetch_tracks(artist_id)         -> list[Track]   (empty on a miss)
    resolve_download_url(track_id)  -> str | None

Authentication:
    A static OAuth token is sent with every request
    (``Authorization: OAuth <token>``). verify() checks it once at startup.

Error Handling:
    Transport failures, HTTP errors and invalid JSON are wrapped in ApiError
    with the original exception chained. HTTP 429, 5xx and connection
    errors are retried with exponential backoff before giving up.

Usage:
    client = YandexMusicClient(token="...")
    client.verify()

    artist = client.fetch_artist(36800)
    tracks = client.fetch_tracks(36800)
"""

import hashlib
import random
import time
from typing import Any

import requests

from yamusic_sync.core.config import Config, DEFAULT_BASE_URL, DEFAULT_CODEC, DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT
from yamusic_sync.core.exceptions import ApiError
from yamusic_sync.core.logger import get_logger
from yamusic_sync.yandex.models import (
    Artist,
    Track,
    DownloadOption,
    decode_artist,
    decode_download_link,
    decode_download_options,
    decode_pager_total,
    decode_tracks,
    select_download_option,
)

logger = get_logger(__name__)


# =============================================================================
# Retry Configuration
# =============================================================================

MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
MAX_DELAY = 10.0  # seconds
JITTER_FACTOR = 0.3

RETRY_STATUSES = {429, 500, 502, 503, 504}
AUTH_STATUSES = {401, 403}

CLIENT_HEADERS = {
    "X-Yandex-Music-Client": "WindowsPhone/3.17",
    "User-Agent": "Windows 10",
    "Connection": "Keep-Alive",
}

# Salt of the storage link signature (md5 over salt + path + s)
SIGN_SALT = "XGRlBW9FXlekgbPrRHuSiA"


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed).
        base_delay: Base delay in seconds.

    Returns:
        Delay in seconds with jitter applied.
    """
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)
    jitter = delay * JITTER_FACTOR * (2 * random.random() - 1)
    return max(0.1, delay + jitter)


def build_signed_url(link: dict[str, str]) -> str:
    """
    Build the final file URL from a download-link descriptor.

    Args:
        link: Dict with host, path, ts and s (see decode_download_link()).

    Returns:
        ``https://{host}/get-mp3/{sign}/{ts}{path}``
    """
    path = link["path"]
    sign = hashlib.md5((SIGN_SALT + path[1:] + link["s"]).encode("utf-8")).hexdigest()
    return f"https://{link['host']}/get-mp3/{sign}/{link['ts']}{path}"


class YandexMusicClient:
    """
    Client for the Yandex Music JSON API.

    Attributes:
        base_url: API root without trailing slash.
        timeout: Per-request timeout in seconds.
        page_size: Tracks requested per page of an artist track list.
        codec: Preferred codec for download URL resolution.

    Thread Safety:
        A requests.Session may be shared between download worker threads
        for plain GET requests.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
        codec: str = DEFAULT_CODEC,
        session: requests.Session | None = None
    ) -> None:
        if not token:
            raise ApiError("Yandex Music token is empty", is_auth_error=True)

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.codec = codec.lower()

        self._session = session or requests.Session()
        self._session.headers.update({**CLIENT_HEADERS, "Authorization": f"OAuth {token}"})

    @classmethod
    def from_config(cls, config: Config, session: requests.Session | None = None) -> "YandexMusicClient":
        return cls(
            token=config.yandex.token,
            base_url=config.yandex.base_url,
            timeout=config.yandex.timeout,
            page_size=config.yandex.page_size,
            codec=config.download.codec,
            session=session
        )

    @property
    def session(self) -> requests.Session:
        """The underlying HTTP session for API calls."""
        return self._session

    def close(self) -> None:
        self._session.close()

    # =========================================================================
    # Account
    # =========================================================================

    def verify(self) -> dict[str, Any]:
        """
        Check that the token is accepted.

        Returns:
            The account object from ``account/status``.

        Raises:
            ApiError: With is_auth_error=True if the token is rejected or
                      the service reports no logged-in account.
        """
        payload = self._get_json("account/status")

        match payload:
            case {"result": {"account": {"uid": _} as account}}:
                logger.debug(f"Authenticated as uid {account['uid']}")
                return account
            case _:
                raise ApiError(
                    "Failed to authenticate with Yandex Music API. Invalid token.",
                    is_auth_error=True
                )

    # =========================================================================
    # Artist Operations
    # =========================================================================

    def fetch_artist(self, artist_id: int) -> Artist | None:
        """
        Get artist metadata.

        Args:
            artist_id: Yandex artist ID.

        Returns:
            Artist, or None if the service does not know the artist
            (HTTP 404 or an unrecognized payload).

        Raises:
            ApiError: On transport failure, other HTTP errors, invalid JSON.
        """
        payload = self._get_json(f"artists/{artist_id}/brief-info", not_found_ok=True)
        if payload is None:
            return None

        artist = decode_artist(payload, artist_id)
        if artist is None:
            logger.debug(f"Unrecognized brief-info payload for artist {artist_id}")
        return artist

    def fetch_tracks(self, artist_id: int) -> list[Track]:
        """
        Get the complete track list of an artist, in API order.

        Pages are requested until the announced total is reached or a page
        brings no new track.

        Returns:
            List of Track objects. Empty (never None) on a miss.

        Raises:
            ApiError: On transport failure, HTTP errors, invalid JSON.
        """
        tracks: list[Track] = []
        seen_ids: set[int] = set()
        page = 0

        while True:
            payload = self._get_json(
                f"artists/{artist_id}/tracks",
                params={"page": page, "page-size": self.page_size},
                not_found_ok=True
            )
            if payload is None:
                break

            page_tracks = [t for t in decode_tracks(payload, artist_id) if t.id not in seen_ids]
            if not page_tracks:
                break

            for track in page_tracks:
                seen_ids.add(track.id)
                tracks.append(track)

            total = decode_pager_total(payload)
            if total is None or len(tracks) >= total:
                break
            page += 1

        logger.debug(f"Fetched {len(tracks)} tracks for artist {artist_id}")
        return tracks

    # =========================================================================
    # Download Operations
    # =========================================================================

    def get_download_options(self, track_id: int) -> list[DownloadOption]:
        """Get every available encoding of a track."""
        payload = self._get_json(f"tracks/{track_id}/download-info", not_found_ok=True)
        if payload is None:
            return []
        return decode_download_options(payload)

    def resolve_download_url(self, track_id: int) -> str | None:
        """
        Resolve a direct file URL for a track.

        Picks the preferred codec at its highest bitrate. Uses the direct
        link when the API provides one, otherwise follows the option's
        download_info_url and signs the storage link.

        Returns:
            The URL, or None when no encoding with the preferred codec
            exists or the link descriptor is unusable.

        Raises:
            ApiError: On transport failure, HTTP errors, invalid JSON.
        """
        option = select_download_option(self.get_download_options(track_id), self.codec)
        if option is None:
            logger.debug(f"No {self.codec} encoding available for track {track_id}")
            return None

        if option.direct_link:
            return option.direct_link

        if not option.download_info_url:
            return None

        payload = self._get_json(option.download_info_url, params={"format": "json"}, absolute=True)
        link = decode_download_link(payload)
        if link is None:
            logger.debug(f"Unusable download link descriptor for track {track_id}")
            return None

        return build_signed_url(link)

    # =========================================================================
    # HTTP
    # =========================================================================

    def _get_json(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        absolute: bool = False,
        not_found_ok: bool = False
    ) -> Any:
        """
        GET an endpoint and return the parsed JSON body.

        Args:
            endpoint: Path relative to base_url, or a full URL if absolute.
            params: Query parameters.
            absolute: Treat endpoint as a full URL.
            not_found_ok: Return None on HTTP 404 instead of raising.

        Raises:
            ApiError: After retries are exhausted, or immediately on
                      non-retryable HTTP errors and invalid JSON.
        """
        url = endpoint if absolute else f"{self.base_url}/{endpoint.lstrip('/')}"

        for attempt in range(MAX_RETRIES):
            last_attempt = attempt == MAX_RETRIES - 1

            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                if not last_attempt:
                    delay = calculate_backoff(attempt)
                    logger.debug(f"Request to {url} failed ({e}), retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue
                raise ApiError(
                    f"Request to Yandex Music API failed: {e}",
                    details={"url": url, "original_error": str(e)}
                ) from e

            status = response.status_code

            if status == 404 and not_found_ok:
                return None

            if status in RETRY_STATUSES:
                if not last_attempt:
                    delay = calculate_backoff(attempt)
                    logger.debug(f"HTTP {status} from {url}, retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue
                raise ApiError(
                    f"Yandex Music API returned HTTP {status}",
                    details={"url": url, "status_code": status},
                    is_rate_limit=status == 429
                )

            if status in AUTH_STATUSES:
                raise ApiError(
                    f"Yandex Music API rejected the token (HTTP {status})",
                    details={"url": url, "status_code": status},
                    is_auth_error=True
                )

            if status >= 400:
                raise ApiError(
                    f"Yandex Music API returned HTTP {status}",
                    details={"url": url, "status_code": status}
                )

            try:
                return response.json()
            except ValueError as e:
                raise ApiError(
                    f"Invalid JSON in Yandex Music API response: {e}",
                    details={"url": url, "original_error": str(e)}
                ) from e

        # Unreachable: the last attempt always returns or raises
        raise ApiError("Yandex Music API request failed", details={"url": url})
