"""
Data models for Yandex Music entities.

This module defines immutable dataclasses for the records the application
moves around (artists, tracks, download options, synchronization snapshots)
and the decoder that turns raw API payloads into them.

Design Decisions:
    - All dataclasses are frozen (immutable); use dataclasses.replace()
      to derive a changed copy (e.g. a track with its local_path set)
    - Field names match the storage row shape, so to_database_dict() is
      a plain field dump
    - The API answers the same endpoint in a few shapes (wrapped in
      "result" or not, list or object); each decoder matches the known
      shapes explicitly and returns None / [] for anything else

Usage:
    from yamusic_sync.yandex.models import Artist, Track, decode_artist

    artist = decode_artist(response_json, artist_id=36800)
    if artist is None:
        ...  # unknown artist
"""

from dataclasses import asdict, dataclass, field
from typing import Any


COVER_SIZE = "400x400"


@dataclass(frozen=True)
class Artist:
    """
    Immutable representation of a Yandex Music artist.

    Attributes:
        id: Yandex artist ID. Primary key in the store.
        name: Display name.
        subscribers_count: Number of users who liked the artist.
        monthly_listeners: Listeners over the last month.
        albums_count: Number of the artist's own albums.
        tracks_count: Number of tracks reported by the service.
        cover_url: Absolute https URL of the artist picture, if any.
    """
    id: int
    name: str
    subscribers_count: int = 0
    monthly_listeners: int = 0
    albums_count: int = 0
    tracks_count: int = 0
    cover_url: str | None = None

    def to_database_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_database_dict(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            subscribers_count=data.get("subscribers_count") or 0,
            monthly_listeners=data.get("monthly_listeners") or 0,
            albums_count=data.get("albums_count") or 0,
            tracks_count=data.get("tracks_count") or 0,
            cover_url=data.get("cover_url"),
        )


@dataclass(frozen=True)
class Track:
    """
    Immutable representation of a Yandex Music track.

    Track IDs are global across the service, so the same track can be
    reached from several artists; the store keeps one row per ID.

    Attributes:
        id: Yandex track ID. Primary key in the store.
        artist_id: ID of the artist the track was fetched for.
        title: Track title.
        duration_seconds: Duration in seconds (fractional).
        album_id: ID of the first album the track appears on, if any.
        album_title: Title of that album, if any.
        cover_url: Absolute https URL of the cover, if any.
        local_path: Path of the downloaded file, None until downloaded.
    """
    id: int
    artist_id: int
    title: str
    duration_seconds: float
    album_id: int | None = None
    album_title: str | None = None
    cover_url: str | None = None
    local_path: str | None = None

    def to_database_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_database_dict(cls, data: dict[str, Any]) -> "Track":
        album_id = data.get("album_id")
        return cls(
            id=int(data["id"]),
            artist_id=int(data["artist_id"]),
            title=data["title"],
            duration_seconds=float(data.get("duration_seconds") or 0),
            album_id=int(album_id) if album_id is not None else None,
            album_title=data.get("album_title"),
            cover_url=data.get("cover_url"),
            local_path=data.get("local_path"),
        )


@dataclass(frozen=True)
class ArtistSnapshot:
    """
    Result of one synchronization: the artist plus its ordered tracks.

    Attributes:
        artist: Freshly fetched artist metadata.
        tracks: Track records in result order.
        new_track_ids: IDs of tracks inserted by this synchronization.
    """
    artist: Artist
    tracks: tuple[Track, ...] = field(default_factory=tuple)
    new_track_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def track_ids(self) -> list[int]:
        return [track.id for track in self.tracks]

    @property
    def downloaded_count(self) -> int:
        return sum(1 for track in self.tracks if track.local_path)

    def to_dict(self) -> dict[str, Any]:
        """Artist record with the track list attached under 'tracks'."""
        data = self.artist.to_database_dict()
        data["tracks"] = [track.to_database_dict() for track in self.tracks]
        return data


@dataclass(frozen=True)
class DownloadOption:
    """
    One available encoding of a track.

    Attributes:
        codec: Codec name as reported by the API ("mp3", "aac", ...).
        bitrate_in_kbps: Bitrate of this encoding.
        download_info_url: URL of the signed-link descriptor, if provided.
        direct_link: Ready-to-use file URL, if provided.
    """
    codec: str
    bitrate_in_kbps: int
    download_info_url: str | None = None
    direct_link: str | None = None


# =============================================================================
# Payload decoding
# =============================================================================

def _cover_url(uri: Any) -> str | None:
    """Turn an API cover URI ("avatars.yandex.net/.../%%") into an https URL."""
    if not isinstance(uri, str) or not uri:
        return None
    uri = uri.replace("%%", COVER_SIZE)
    if uri.startswith(("http://", "https://")):
        return uri
    return f"https://{uri.lstrip('/')}"


def _as_int(value: Any) -> int | None:
    """Convert an API id (int or numeric string) to int, None if impossible."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _count(value: Any) -> int:
    return _as_int(value) or 0


def decode_artist(payload: Any, artist_id: int) -> Artist | None:
    """
    Decode an artist brief-info payload into an Artist.

    Accepted shapes:
        {"result": {"artist": {...}, "stats": {...}}}
        {"artist": {...}, "stats": {...}}
        {"id": ..., "name": ..., ...}            (bare artist object)

    Field mapping:
        likesCount               -> subscribers_count
        stats.lastMonthListeners -> monthly_listeners
        counts.directAlbums      -> albums_count
        counts.tracks            -> tracks_count
        cover.uri                -> cover_url

    Args:
        payload: Parsed JSON response.
        artist_id: Requested ID; used as the record ID so the stored
                   identity always matches the locator.

    Returns:
        Artist, or None when the payload matches no known shape.
    """
    match payload:
        case {"result": {"artist": dict() as artist, **rest}}:
            stats = rest.get("stats")
        case {"artist": dict() as artist, **rest}:
            stats = rest.get("stats")
        case {"id": _, "name": str()} as artist:
            stats = None
        case _:
            return None

    name = artist.get("name")
    if not isinstance(name, str) or not name:
        return None

    counts = artist.get("counts") if isinstance(artist.get("counts"), dict) else {}
    stats = stats if isinstance(stats, dict) else {}
    cover = artist.get("cover") if isinstance(artist.get("cover"), dict) else {}

    return Artist(
        id=artist_id,
        name=name,
        subscribers_count=_count(artist.get("likesCount")),
        monthly_listeners=_count(stats.get("lastMonthListeners")),
        albums_count=_count(counts.get("directAlbums")),
        tracks_count=_count(counts.get("tracks")),
        cover_url=_cover_url(cover.get("uri")),
    )


def decode_track(item: Any, artist_id: int) -> Track | None:
    """
    Decode one track object of a track list.

    Returns None for items without a usable id or title
    (unavailable or malformed entries).
    """
    if not isinstance(item, dict):
        return None

    track_id = _as_int(item.get("id"))
    title = item.get("title")
    if track_id is None or not isinstance(title, str) or not title:
        return None

    duration_ms = item.get("durationMs")
    if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)):
        duration_ms = 0

    album_id = None
    album_title = None
    match item.get("albums"):
        case [dict() as album, *_]:
            album_id = _as_int(album.get("id"))
            album_title = album.get("title") if isinstance(album.get("title"), str) else None
        case _:
            pass

    return Track(
        id=track_id,
        artist_id=artist_id,
        title=title,
        duration_seconds=duration_ms / 1000,
        album_id=album_id,
        album_title=album_title,
        cover_url=_cover_url(item.get("coverUri")),
    )


def decode_tracks(payload: Any, artist_id: int) -> list[Track]:
    """
    Decode an artist track-list payload into Tracks, keeping API order.

    Accepted shapes:
        {"result": {"tracks": [...]}}
        {"result": [...]}
        {"tracks": [...]}
        [...]

    Returns:
        List of Track objects; empty when the payload matches no known
        shape or contains no usable tracks.
    """
    match payload:
        case {"result": {"tracks": list() as items}}:
            pass
        case {"result": list() as items}:
            pass
        case {"tracks": list() as items}:
            pass
        case list() as items:
            pass
        case _:
            return []

    tracks = []
    for item in items:
        track = decode_track(item, artist_id)
        if track is not None:
            tracks.append(track)
    return tracks


def decode_pager_total(payload: Any) -> int | None:
    """Total number of items announced by a paged response, if any."""
    match payload:
        case {"result": {"pager": {"total": int() as total}}}:
            return total
        case {"pager": {"total": int() as total}}:
            return total
        case _:
            return None


def decode_download_link(payload: Any) -> dict[str, str] | None:
    """
    Decode the signed-link descriptor behind a download_info_url.

    Accepted shapes:
        {"host": ..., "path": ..., "ts": ..., "s": ...}
        {"result": {"host": ..., ...}}

    Returns:
        Dict with host, path, ts and s as strings, or None.
    """
    match payload:
        case {"result": {"host": str(), "path": str(), "ts": _, "s": str()} as info}:
            pass
        case {"host": str(), "path": str(), "ts": _, "s": str()} as info:
            pass
        case _:
            return None
    return {key: str(info[key]) for key in ("host", "path", "ts", "s")}


def decode_download_options(payload: Any) -> list[DownloadOption]:
    """
    Decode a download-info payload into DownloadOptions.

    Accepted shapes:
        {"result": [...]}
        [...]
    """
    match payload:
        case {"result": list() as items}:
            pass
        case list() as items:
            pass
        case _:
            return []

    options = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("codec"), str):
            continue
        options.append(DownloadOption(
            codec=item["codec"].lower(),
            bitrate_in_kbps=_count(item.get("bitrateInKbps")),
            download_info_url=item.get("downloadInfoUrl"),
            direct_link=item.get("directLink"),
        ))
    return options


def select_download_option(options: list[DownloadOption], codec: str) -> DownloadOption | None:
    """
    Pick the highest-bitrate option with the preferred codec.

    On equal bitrates the first option in API order wins.

    Returns:
        The chosen option, or None if no option has this codec.
    """
    best = None
    for option in options:
        if option.codec != codec.lower():
            continue
        if best is None or option.bitrate_in_kbps > best.bitrate_in_kbps:
            best = option
    return best
