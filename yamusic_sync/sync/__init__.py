"""
Sync module for yamusic-sync.

Reconciles a Yandex Music artist with the local store:
    - synchronizer: diff path for known artists, bulk path for new ones

Usage:
    from yamusic_sync.sync import Synchronizer, create_synchronizer
"""

from yamusic_sync.sync.synchronizer import Synchronizer, create_synchronizer

__all__ = ["Synchronizer", "create_synchronizer"]
