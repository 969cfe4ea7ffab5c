"""
Yandex Music module for yamusic-sync.

This module handles all interaction with the Yandex Music API:
    - client: HTTP client (artist metadata, track lists, download URLs)
    - models: Artist / Track records and the API payload decoder

Usage:
    from yamusic_sync.yandex import YandexMusicClient, Artist, Track

    client = YandexMusicClient(token="...")
    artist = client.fetch_artist(36800)
"""

from yamusic_sync.yandex.client import YandexMusicClient
from yamusic_sync.yandex.models import (
    Artist,
    ArtistSnapshot,
    DownloadOption,
    Track,
    decode_artist,
    decode_tracks,
    select_download_option,
)

__all__ = [
    "YandexMusicClient",
    "Artist",
    "ArtistSnapshot",
    "DownloadOption",
    "Track",
    "decode_artist",
    "decode_tracks",
    "select_download_option",
]
