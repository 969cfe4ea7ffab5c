"""
Download module for yamusic-sync.

Resolves track file URLs and streams the audio into the download directory.

Usage:
    from yamusic_sync.download import TrackDownloader
"""

from yamusic_sync.download.downloader import TrackDownloader

__all__ = ["TrackDownloader"]
