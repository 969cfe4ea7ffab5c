"""Test the track downloader"""

import pytest
import requests
from unittest.mock import Mock, patch

from yamusic_sync.core.exceptions import ApiError, DownloadError
from yamusic_sync.download.downloader import TrackDownloader
from yamusic_sync.yandex.client import YandexMusicClient


@pytest.fixture
def provider():
    provider = Mock(spec=YandexMusicClient)
    provider.resolve_download_url.return_value = "https://cdn.example/file.mp3"
    return provider


@pytest.fixture
def downloader(provider, temp_dir, mock_session):
    return TrackDownloader(provider, output_dir=temp_dir, session=mock_session)


class TestDownloadRoot:
    """Test download root validation"""

    def test_default_subdirectory(self, downloader, temp_dir):
        """Test the root is created under the output directory"""
        assert downloader.download_dir == (temp_dir / "downloads").resolve()
        assert downloader.download_dir.is_dir()

    def test_traversal_is_stripped(self, provider, temp_dir, mock_session):
        """Test a subdirectory cannot escape the output directory"""
        downloader = TrackDownloader(
            provider, output_dir=temp_dir, subdirectory="../../evil", session=mock_session
        )
        assert downloader.download_dir == (temp_dir / "evil").resolve()

    def test_not_writable(self, provider, temp_dir, mock_session):
        """Test an unwritable root is a DownloadError"""
        with patch("yamusic_sync.download.downloader.os.access", return_value=False):
            with pytest.raises(DownloadError) as exc_info:
                TrackDownloader(provider, output_dir=temp_dir, session=mock_session)
        assert "not writable" in exc_info.value.message

    def test_cannot_create(self, provider, temp_dir, mock_session):
        """Test a root blocked by a regular file is a DownloadError"""
        (temp_dir / "downloads").write_text("not a directory")
        with pytest.raises(DownloadError):
            TrackDownloader(provider, output_dir=temp_dir, session=mock_session)


class TestDownload:
    """Test downloading one track"""

    def test_streams_to_sanitized_file(self, downloader, mock_session, mock_response, provider):
        """Test the body is written to <root>/<sanitized name>.mp3"""
        mock_session.get.return_value = mock_response(chunks=[b"ID3", b"", b"data"])

        path = downloader.download(101, "36800_Song Title!")

        expected = downloader.download_dir / "36800_Song_Title_.mp3"
        assert path == str(expected)
        assert expected.read_bytes() == b"ID3data"
        provider.resolve_download_url.assert_called_once_with(101)
        mock_session.get.assert_called_once_with(
            "https://cdn.example/file.mp3", stream=True, timeout=30.0
        )
        mock_session.get.return_value.close.assert_called_once()

    def test_no_url(self, downloader, provider, mock_session):
        """Test None when the service offers no URL"""
        provider.resolve_download_url.return_value = None
        assert downloader.download(101, "name") is None
        mock_session.get.assert_not_called()

    def test_resolution_failure(self, downloader, provider):
        """Test an API failure while resolving becomes a DownloadError"""
        error = ApiError("HTTP 500")
        provider.resolve_download_url.side_effect = error
        with pytest.raises(DownloadError) as exc_info:
            downloader.download(101, "name")
        assert exc_info.value.__cause__ is error

    def test_bad_status(self, downloader, mock_session, mock_response):
        """Test a non-200 answer leaves no file"""
        mock_session.get.return_value = mock_response(status_code=410)
        with pytest.raises(DownloadError) as exc_info:
            downloader.download(101, "name")
        assert exc_info.value.details["status_code"] == 410
        assert not (downloader.download_dir / "name.mp3").exists()

    def test_connection_failure(self, downloader, mock_session):
        """Test a failed request is a DownloadError"""
        mock_session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(DownloadError):
            downloader.download(101, "name")

    def test_partial_file_removed(self, downloader, mock_session, mock_response):
        """Test a stream dropped mid-way removes what was written"""
        def broken_stream(chunk_size):
            yield b"partial"
            raise requests.ConnectionError("reset")

        response = mock_response()
        response.iter_content.side_effect = broken_stream
        mock_session.get.return_value = response

        with pytest.raises(DownloadError):
            downloader.download(101, "name")
        assert not (downloader.download_dir / "name.mp3").exists()
        response.close.assert_called_once()

    def test_close_closes_session(self, downloader, mock_session):
        """Test close releases the transfer session"""
        downloader.close()
        mock_session.close.assert_called_once()
