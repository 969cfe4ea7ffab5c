"""Test configuration and fixtures"""

import pytest
import tempfile
from pathlib import Path
from unittest.mock import Mock

from yamusic_sync.core.database import Database
from yamusic_sync.download.downloader import TrackDownloader
from yamusic_sync.yandex.client import YandexMusicClient
from yamusic_sync.yandex.models import Artist, Track


ARTIST_ID = 36800


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def database(temp_dir):
    """Real SQLite database in the temporary directory"""
    db = Database(temp_dir / "database.db")
    yield db
    db.close()


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Keep a developer's .env out of config loading"""
    monkeypatch.setattr("yamusic_sync.core.config.load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def sample_artist():
    """Artist record as returned by the client"""
    return Artist(
        id=ARTIST_ID,
        name="Kino",
        subscribers_count=1500000,
        monthly_listeners=2300000,
        albums_count=12,
        tracks_count=3,
        cover_url="https://avatars.yandex.net/get-music-content/kino/400x400",
    )


@pytest.fixture
def make_track():
    """Factory for Track records of the sample artist"""
    def _make_track(track_id, title=None, artist_id=ARTIST_ID, local_path=None):
        return Track(
            id=track_id,
            artist_id=artist_id,
            title=title or f"Song {track_id}",
            duration_seconds=215.5,
            album_id=900,
            album_title="Gruppa krovi",
            local_path=local_path,
        )
    return _make_track


@pytest.fixture
def sample_artist_payload():
    """brief-info response of the Yandex Music API"""
    return {
        "result": {
            "artist": {
                "id": ARTIST_ID,
                "name": "Kino",
                "likesCount": 1500000,
                "counts": {"directAlbums": 12, "tracks": 3},
                "cover": {"uri": "avatars.yandex.net/get-music-content/kino/%%"},
            },
            "stats": {"lastMonthListeners": 2300000},
        }
    }


@pytest.fixture
def sample_tracks_payload():
    """artists/{id}/tracks response of the Yandex Music API"""
    return {
        "result": {
            "pager": {"page": 0, "perPage": 200, "total": 3},
            "tracks": [
                {
                    "id": "101",
                    "title": "Gruppa krovi",
                    "durationMs": 285000,
                    "albums": [{"id": 900, "title": "Gruppa krovi"}],
                    "coverUri": "avatars.yandex.net/get-music-content/101/%%",
                },
                {
                    "id": 102,
                    "title": "Kukushka",
                    "durationMs": 399500,
                    "albums": [],
                },
                {
                    "id": "103",
                    "title": "Zvezda po imeni Solntse",
                    "durationMs": 225000,
                },
            ],
        }
    }


@pytest.fixture
def mock_response():
    """Factory for fake requests.Response objects"""
    def _mock_response(status_code=200, json_data=None, chunks=None):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = json_data
        response.iter_content.return_value = chunks or []
        return response
    return _mock_response


@pytest.fixture
def mock_session():
    """Fake requests.Session with a real headers dict"""
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def mock_provider(sample_artist):
    """Fake YandexMusicClient returning the sample artist and no tracks"""
    provider = Mock(spec=YandexMusicClient)
    provider.fetch_artist.return_value = sample_artist
    provider.fetch_tracks.return_value = []
    return provider


@pytest.fixture
def mock_downloader():
    """Fake TrackDownloader that 'downloads' every track to /music/<name>.mp3"""
    downloader = Mock(spec=TrackDownloader)
    downloader.download.side_effect = lambda track_id, name: f"/music/{name}.mp3"
    return downloader


@pytest.fixture
def write_config(temp_dir):
    """Write a config.yaml into the temporary directory and return its path"""
    def _write_config(content):
        path = temp_dir / "config.yaml"
        path.write_text(content, encoding="utf-8")
        return path
    return _write_config
