"""
Artist synchronization for yamusic-sync.

This module reconciles one artist's remote state with the local store and
optionally downloads the audio of tracks it has not seen before. Every call
is idempotent: running it again without remote changes returns the same
snapshot and writes no new track rows.

Workflow:
    1. Extract the artist ID from the locator (artist/<digits>)
    2. Fetch artist metadata; unknown artist -> NotFoundError, store untouched
    3. Save the metadata (full replace)
    4a. Known artist (diff path):
        - Load stored tracks
        - Fetch the remote list; on failure or empty list keep stored tracks
        - Reuse remote tracks stored under another artist, as they are
        - Download (optional) and save remote tracks not stored yet
        - Result: stored tracks, then new tracks in remote order
    4b. New artist (bulk path):
        - Fetch the remote list
        - Reuse tracks already stored (track IDs are global), as they are
        - Download (optional) and save the others
        - Result: remote order
    5. Return ArtistSnapshot(artist, tracks)

Failure Policy:
    - Artist fetch errors propagate
    - Track list errors on the diff path are logged and swallowed
    - Storage errors propagate at once; earlier writes stay
    - Download errors propagate with on_download_error="raise", or are
      logged and the track is saved without a file with "skip"

Usage:
    from yamusic_sync.sync import create_synchronizer

    synchronizer = create_synchronizer(config)
    snapshot = synchronizer.synchronize(
        "https://music.yandex.ru/artist/36800/tracks",
        download=True
    )
    print(snapshot.to_dict())
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import replace
from functools import partial
from typing import Iterable, Iterator

from tqdm import tqdm

from yamusic_sync.core.config import Config, DOWNLOAD_ERROR_POLICIES
from yamusic_sync.core.database import Database
from yamusic_sync.core.exceptions import ApiError, ConfigError, DownloadError, NotFoundError
from yamusic_sync.core.logger import get_logger, log_download_failure
from yamusic_sync.download.downloader import TrackDownloader
from yamusic_sync.utils import ensure_directory, extract_artist_id, format_track_basename
from yamusic_sync.yandex.client import YandexMusicClient
from yamusic_sync.yandex.models import Artist, ArtistSnapshot, Track

logger = get_logger(__name__)


def _unique_tracks(tracks: Iterable[Track]) -> list[Track]:
    """Drop repeated track IDs, keeping the first occurrence."""
    seen_ids: set[int] = set()
    unique: list[Track] = []
    for track in tracks:
        if track.id not in seen_ids:
            seen_ids.add(track.id)
            unique.append(track)
    return unique


class Synchronizer:
    """
    Reconciles a Yandex Music artist with the local store.

    Attributes:
        on_download_error: "raise" or "skip" (see module docstring).
        max_workers: Worker pool size for downloads of new tracks.
                     Each worker handles download-then-save for the tracks
                     sharing one file name; result order does not depend
                     on completion order.

    Thread Safety:
        Calls for different artists may run concurrently. Calls for the
        same artist are serialized by a per-artist lock, dropped once no
        call holds or waits on it.
    """

    def __init__(
        self,
        provider: YandexMusicClient,
        database: Database,
        downloader: TrackDownloader | None = None,
        on_download_error: str = "raise",
        max_workers: int = 1,
        show_progress: bool = False
    ) -> None:
        if on_download_error not in DOWNLOAD_ERROR_POLICIES:
            raise ConfigError(
                f"Unknown download error policy: {on_download_error}",
                details={"value": on_download_error}
            )
        if max_workers < 1:
            raise ConfigError(
                "Download worker count must be at least 1",
                details={"value": max_workers}
            )

        self._provider = provider
        self._database = database
        self._downloader = downloader
        self.on_download_error = on_download_error
        self.max_workers = max_workers
        self.show_progress = show_progress

        self._locks_guard = threading.Lock()
        self._artist_locks: dict[int, threading.Lock] = {}
        self._lock_users: dict[int, int] = {}

    @property
    def provider(self) -> YandexMusicClient:
        return self._provider

    @property
    def database(self) -> Database:
        return self._database

    def synchronize(self, locator: str | int, download: bool = False) -> ArtistSnapshot:
        """
        Synchronize one artist.

        Args:
            locator: Artist URL (anything containing ``artist/<digits>``)
                     or the numeric artist ID.
            download: Download the audio of newly stored tracks.

        Returns:
            ArtistSnapshot with fresh artist metadata and ordered tracks.

        Raises:
            ValidationError: Locator has no artist ID.
            NotFoundError: The service has no data for the artist.
            ApiError: Artist fetch failed, or the track list fetch failed
                      on a first sync.
            StorageError: Any database failure.
            DownloadError: A download failed and the policy is "raise",
                           or download=True without a downloader.
        """
        artist_id = locator if isinstance(locator, int) else extract_artist_id(locator)

        if download and self._downloader is None:
            raise DownloadError(
                "Downloads requested but no downloader is configured",
                details={"artist_id": artist_id}
            )

        with self._artist_lock(artist_id):
            return self._synchronize_artist(artist_id, download)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _synchronize_artist(self, artist_id: int, download: bool) -> ArtistSnapshot:
        logger.info(f"Fetching artist {artist_id}")

        artist = self._provider.fetch_artist(artist_id)
        if artist is None:
            raise NotFoundError(
                f"Failed to fetch artist data for ID: {artist_id}",
                details={"artist_id": artist_id}
            )

        known = self._database.get_artist(artist_id) is not None
        self._database.save_artist(artist.to_database_dict())

        if known:
            logger.info(f"Updating artist: {artist.name}")
            tracks, new_ids = self._update_artist_tracks(artist, download)
        else:
            logger.info(f"New artist: {artist.name}")
            tracks, new_ids = self._fetch_and_save_tracks(artist, download)

        snapshot = ArtistSnapshot(
            artist=artist,
            tracks=tuple(tracks),
            new_track_ids=frozenset(new_ids)
        )
        logger.info(
            f"Synchronized {artist.name}: {len(snapshot.tracks)} tracks, "
            f"{len(new_ids)} new"
        )
        return snapshot

    def _update_artist_tracks(self, artist: Artist, download: bool) -> tuple[list[Track], list[int]]:
        """
        Diff path: add only remote tracks that are not stored yet.

        A remote track stored under another artist is reused as it is and
        listed right after the closest preceding remote track, so repeated
        calls reproduce the order of the first sync.
        """
        existing = [
            Track.from_database_dict(row)
            for row in self._database.get_artist_tracks(artist.id)
        ]
        existing_ids = {track.id for track in existing}

        try:
            remote = self._provider.fetch_tracks(artist.id)
        except ApiError as e:
            logger.warning(
                f"Could not fetch tracks of {artist.name}, "
                f"keeping {len(existing)} stored tracks: {e}"
            )
            return existing, []

        if not remote:
            logger.warning(f"No tracks returned for {artist.name}, keeping {len(existing)} stored tracks")
            return existing, []

        remote = _unique_tracks(remote)
        tracks = list(existing)
        pending: list[Track] = []
        for position, track in enumerate(remote):
            if track.id in existing_ids:
                continue
            row = self._database.get_track(track.id)
            if row is None:
                pending.append(track)
                continue

            logger.debug(f"Track {track.id} already stored, reusing it")
            listed_ids = [t.id for t in tracks]
            index = 0
            for previous in reversed(remote[:position]):
                if previous.id in listed_ids:
                    index = listed_ids.index(previous.id) + 1
                    break
            tracks.insert(index, Track.from_database_dict(row))

        logger.info(f"Found {len(pending)} new tracks ({len(tracks)} already stored)")

        added = self._process_tracks(pending, download)
        return tracks + added, [track.id for track in added]

    def _fetch_and_save_tracks(self, artist: Artist, download: bool) -> tuple[list[Track], list[int]]:
        """Bulk path: store the whole remote list, reusing tracks already stored."""
        remote = _unique_tracks(self._provider.fetch_tracks(artist.id))
        logger.info(f"Found {len(remote)} tracks")

        slots: list[Track | None] = []
        pending: list[Track] = []
        for track in remote:
            row = self._database.get_track(track.id)
            if row is not None:
                logger.debug(f"Track {track.id} already stored, reusing it")
                slots.append(Track.from_database_dict(row))
            else:
                slots.append(None)
                pending.append(track)

        added = iter(self._process_tracks(pending, download))
        tracks = [slot if slot is not None else next(added) for slot in slots]
        return tracks, [track.id for track in pending]

    # =========================================================================
    # Per-track processing
    # =========================================================================

    def _process_tracks(self, tracks: list[Track], download: bool) -> list[Track]:
        """
        Run download-then-save for each track, returning them in input order.

        Uses the worker pool only when downloading with max_workers > 1.
        Tracks whose file names collide are handled by the same worker,
        one after another, so no two workers write the same file.
        """
        if not tracks:
            return []

        unit = partial(self._process_track, download=download)

        if download and self.max_workers > 1:
            groups: dict[str, list[int]] = {}
            for index, track in enumerate(tracks):
                name = format_track_basename(track.artist_id, track.title)
                groups.setdefault(name, []).append(index)

            if len(groups) > 1:
                return self._process_groups(tracks, list(groups.values()), unit)

        return [unit(track) for track in self._progress(tracks, len(tracks), enabled=download)]

    def _process_groups(self, tracks: list[Track], groups: list[list[int]], unit) -> list[Track]:
        def run_group(indexes: list[int]) -> list[tuple[int, Track]]:
            return [(index, unit(tracks[index])) for index in indexes]

        results: list[Track | None] = [None] * len(tracks)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(groups))) as executor:
            try:
                for done in self._progress(executor.map(run_group, groups), len(groups)):
                    for index, track in done:
                        results[index] = track
            except Exception:
                executor.shutdown(wait=True, cancel_futures=True)
                raise

        return results

    def _process_track(self, track: Track, download: bool) -> Track:
        """Download (optional) and save one track; returns the saved record."""
        if download:
            file_name = format_track_basename(track.artist_id, track.title)
            try:
                local_path = self._downloader.download(track.id, file_name)
            except DownloadError as e:
                log_download_failure(logger, track.id, file_name, e.message)
                if self.on_download_error == "raise":
                    raise
                local_path = None

            if local_path:
                track = replace(track, local_path=local_path)

        self._database.save_track(track.to_database_dict())
        logger.debug(f"Saved track {track.id}: {track.title}")
        return track

    def _progress(self, items: Iterable, total: int, enabled: bool = True) -> Iterator:
        return iter(tqdm(
            items,
            total=total,
            desc="Downloading",
            unit="track",
            disable=not (self.show_progress and enabled)
        ))

    @contextmanager
    def _artist_lock(self, artist_id: int) -> Iterator[None]:
        with self._locks_guard:
            lock = self._artist_locks.setdefault(artist_id, threading.Lock())
            self._lock_users[artist_id] = self._lock_users.get(artist_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            # The lock is dropped once no caller holds or waits on it
            with self._locks_guard:
                self._lock_users[artist_id] -= 1
                if not self._lock_users[artist_id]:
                    del self._lock_users[artist_id]
                    del self._artist_locks[artist_id]

    def close(self) -> None:
        """Close the database connection, the downloader and the API session."""
        self._database.close()
        if self._downloader is not None:
            self._downloader.close()
        self._provider.close()


def create_synchronizer(config: Config, show_progress: bool = False) -> Synchronizer:
    """
    Wire a Synchronizer from configuration.

    Creates the output directory, opens the database, and builds the API
    client and the downloader (which validates the download directory).

    Raises:
        StorageError: If the database cannot be opened.
        DownloadError: If the download directory is unusable.
    """
    ensure_directory(config.output.directory)
    ensure_directory(config.output.database.parent)

    provider = YandexMusicClient.from_config(config)
    database = Database(config.output.database)
    downloader = TrackDownloader.from_config(config, provider)

    return Synchronizer(
        provider=provider,
        database=database,
        downloader=downloader,
        on_download_error=config.download.on_error,
        max_workers=config.download.threads,
        show_progress=show_progress
    )
