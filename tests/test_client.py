"""Test the Yandex Music API client (HTTP mocked at the session)"""

import hashlib
import pytest
import requests
from unittest.mock import call, patch

from yamusic_sync.core.exceptions import ApiError
from yamusic_sync.yandex.client import (
    MAX_DELAY,
    SIGN_SALT,
    YandexMusicClient,
    build_signed_url,
    calculate_backoff,
)


@pytest.fixture
def client(mock_session):
    return YandexMusicClient(
        token="secret",
        base_url="https://api.example/",
        page_size=2,
        session=mock_session,
    )


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("yamusic_sync.yandex.client.time.sleep") as sleep:
        yield sleep


class TestClientSetup:
    """Test construction"""

    def test_headers(self, client, mock_session):
        """Test the OAuth and client headers are set on the session"""
        assert mock_session.headers["Authorization"] == "OAuth secret"
        assert mock_session.headers["X-Yandex-Music-Client"] == "WindowsPhone/3.17"
        assert client.base_url == "https://api.example"

    def test_empty_token(self, mock_session):
        """Test an empty token is an auth error"""
        with pytest.raises(ApiError) as exc_info:
            YandexMusicClient(token="", session=mock_session)
        assert exc_info.value.is_auth_error

    def test_backoff_is_bounded(self):
        """Test backoff grows and stays under the cap plus jitter"""
        for attempt in range(10):
            delay = calculate_backoff(attempt)
            assert 0.1 <= delay <= MAX_DELAY * 1.3


class TestVerify:
    """Test token verification"""

    def test_accepted(self, client, mock_session, mock_response):
        """Test the account is returned for a valid token"""
        mock_session.get.return_value = mock_response(
            json_data={"result": {"account": {"uid": 42, "login": "user"}}}
        )
        assert client.verify()["uid"] == 42
        assert mock_session.get.call_args[0][0] == "https://api.example/account/status"

    def test_anonymous_account(self, client, mock_session, mock_response):
        """Test a response without uid is an auth error"""
        mock_session.get.return_value = mock_response(json_data={"result": {"account": {}}})
        with pytest.raises(ApiError) as exc_info:
            client.verify()
        assert exc_info.value.is_auth_error

    def test_rejected(self, client, mock_session, mock_response):
        """Test HTTP 401 is an auth error without retries"""
        mock_session.get.return_value = mock_response(status_code=401)
        with pytest.raises(ApiError) as exc_info:
            client.verify()
        assert exc_info.value.is_auth_error
        assert mock_session.get.call_count == 1


class TestFetchArtist:
    """Test artist metadata fetching"""

    def test_found(self, client, mock_session, mock_response, sample_artist_payload, sample_artist):
        """Test the brief-info payload decodes to the artist"""
        mock_session.get.return_value = mock_response(json_data=sample_artist_payload)

        assert client.fetch_artist(36800) == sample_artist
        assert mock_session.get.call_args[0][0] == "https://api.example/artists/36800/brief-info"

    def test_not_found(self, client, mock_session, mock_response):
        """Test HTTP 404 yields None"""
        mock_session.get.return_value = mock_response(status_code=404)
        assert client.fetch_artist(1) is None

    def test_unrecognized_payload(self, client, mock_session, mock_response):
        """Test an unknown shape yields None"""
        mock_session.get.return_value = mock_response(json_data={"result": {"error": "x"}})
        assert client.fetch_artist(1) is None

    def test_retries_then_succeeds(self, client, mock_session, mock_response, sample_artist_payload, no_sleep):
        """Test 503 and connection errors are retried"""
        mock_session.get.side_effect = [
            mock_response(status_code=503),
            requests.ConnectionError("reset"),
            mock_response(json_data=sample_artist_payload),
        ]
        assert client.fetch_artist(36800).name == "Kino"
        assert no_sleep.call_count == 2

    def test_rate_limit_exhausted(self, client, mock_session, mock_response):
        """Test persistent 429 ends in a rate-limit ApiError"""
        mock_session.get.return_value = mock_response(status_code=429)
        with pytest.raises(ApiError) as exc_info:
            client.fetch_artist(1)
        assert exc_info.value.is_rate_limit
        assert mock_session.get.call_count == 3

    def test_transport_failure_is_wrapped(self, client, mock_session):
        """Test the original exception is chained"""
        error = requests.ConnectionError("down")
        mock_session.get.side_effect = error
        with pytest.raises(ApiError) as exc_info:
            client.fetch_artist(1)
        assert exc_info.value.__cause__ is error
        assert exc_info.value.details["original_error"] == "down"

    def test_invalid_json(self, client, mock_session, mock_response):
        """Test an unparsable body is an ApiError"""
        response = mock_response()
        response.json.side_effect = ValueError("Expecting value")
        mock_session.get.return_value = response
        with pytest.raises(ApiError):
            client.fetch_artist(1)

    def test_other_http_error(self, client, mock_session, mock_response):
        """Test a 400 is not retried"""
        mock_session.get.return_value = mock_response(status_code=400)
        with pytest.raises(ApiError) as exc_info:
            client.fetch_artist(1)
        assert exc_info.value.details["status_code"] == 400
        assert mock_session.get.call_count == 1


class TestFetchTracks:
    """Test paginated track list fetching"""

    def _page(self, ids, total):
        return {
            "result": {
                "pager": {"total": total},
                "tracks": [{"id": i, "title": f"Song {i}", "durationMs": 1000} for i in ids],
            }
        }

    def test_paginates_until_total(self, client, mock_session, mock_response):
        """Test pages are requested until the announced total is reached"""
        mock_session.get.side_effect = [
            mock_response(json_data=self._page([1, 2], total=3)),
            mock_response(json_data=self._page([3], total=3)),
        ]
        tracks = client.fetch_tracks(36800)

        assert [t.id for t in tracks] == [1, 2, 3]
        assert mock_session.get.call_args_list[0] == call(
            "https://api.example/artists/36800/tracks",
            params={"page": 0, "page-size": 2},
            timeout=30.0,
        )
        assert mock_session.get.call_args_list[1][1]["params"]["page"] == 1

    def test_stops_on_repeated_page(self, client, mock_session, mock_response):
        """Test a page without new ids ends the loop"""
        mock_session.get.side_effect = [
            mock_response(json_data=self._page([1, 2], total=10)),
            mock_response(json_data=self._page([1, 2], total=10)),
        ]
        assert [t.id for t in client.fetch_tracks(1)] == [1, 2]
        assert mock_session.get.call_count == 2

    def test_single_page_without_pager(self, client, mock_session, mock_response):
        """Test a bare list is one complete page"""
        mock_session.get.return_value = mock_response(json_data=[{"id": 5, "title": "x"}])
        assert [t.id for t in client.fetch_tracks(1)] == [5]

    def test_miss_is_empty_list(self, client, mock_session, mock_response):
        """Test 404 and unknown shapes yield an empty list, never None"""
        mock_session.get.return_value = mock_response(status_code=404)
        assert client.fetch_tracks(1) == []

        mock_session.get.return_value = mock_response(json_data={"result": None})
        assert client.fetch_tracks(1) == []


class TestResolveDownloadUrl:
    """Test download URL resolution"""

    def test_signed_url(self, client, mock_session, mock_response):
        """Test the descriptor behind downloadInfoUrl is signed"""
        mock_session.get.side_effect = [
            mock_response(json_data={"result": [
                {"codec": "mp3", "bitrateInKbps": 128, "downloadInfoUrl": "https://info/low"},
                {"codec": "mp3", "bitrateInKbps": 320, "downloadInfoUrl": "https://info/high"},
            ]}),
            mock_response(json_data={"host": "s1.storage", "path": "/music/abc", "ts": "0f", "s": "xyz"}),
        ]
        url = client.resolve_download_url(101)

        sign = hashlib.md5((SIGN_SALT + "music/abc" + "xyz").encode("utf-8")).hexdigest()
        assert url == f"https://s1.storage/get-mp3/{sign}/0f/music/abc"
        assert mock_session.get.call_args_list[1] == call(
            "https://info/high", params={"format": "json"}, timeout=30.0
        )

    def test_direct_link(self, client, mock_session, mock_response):
        """Test a direct link is used without a second request"""
        mock_session.get.return_value = mock_response(json_data=[
            {"codec": "mp3", "bitrateInKbps": 320, "directLink": "https://cdn/file.mp3"},
        ])
        assert client.resolve_download_url(101) == "https://cdn/file.mp3"
        assert mock_session.get.call_count == 1

    def test_no_matching_codec(self, client, mock_session, mock_response):
        """Test None when the preferred codec is not offered"""
        mock_session.get.return_value = mock_response(json_data={"result": [
            {"codec": "aac", "bitrateInKbps": 256, "downloadInfoUrl": "https://info"},
        ]})
        assert client.resolve_download_url(101) is None

    def test_build_signed_url(self):
        """Test the signature covers the path without its leading slash"""
        link = {"host": "h", "path": "/p", "ts": "t", "s": "s"}
        sign = hashlib.md5(f"{SIGN_SALT}ps".encode("utf-8")).hexdigest()
        assert build_signed_url(link) == f"https://h/get-mp3/{sign}/t/p"
