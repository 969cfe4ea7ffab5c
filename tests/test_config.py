"""Test configuration loading"""

import pytest

from yamusic_sync.core.config import (
    DEFAULT_BASE_URL,
    TOKEN_ENV_VAR,
    DownloadConfig,
    load_config,
)
from yamusic_sync.core.exceptions import ConfigError


MINIMAL_CONFIG = """
yandex:
  token: "file-token"
output:
  directory: "{directory}"
"""


@pytest.fixture(autouse=True)
def no_token_env(monkeypatch):
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)


class TestLoadConfig:
    """Test config.yaml parsing"""

    def test_minimal_config_defaults(self, write_config, temp_dir):
        """Test defaults are applied for every optional field"""
        path = write_config(MINIMAL_CONFIG.format(directory=temp_dir / "out"))

        config = load_config(path)

        assert config.yandex.token == "file-token"
        assert config.yandex.base_url == DEFAULT_BASE_URL
        assert config.yandex.timeout == 30.0
        assert config.yandex.page_size == 200
        assert config.output.directory == (temp_dir / "out").resolve()
        assert config.output.database == (temp_dir / "out").resolve() / "database.db"
        assert config.download == DownloadConfig()

    def test_full_config(self, write_config, temp_dir):
        """Test every field is read"""
        path = write_config(f"""
yandex:
  token: "t"
  base_url: "https://proxy.example/api/"
  timeout: 5
  page_size: 50
output:
  directory: "{temp_dir}"
  database: "state/music.db"
download:
  subdirectory: "mp3"
  codec: "MP3"
  threads: 4
  on_error: "skip"
""")
        config = load_config(path)

        assert config.yandex.base_url == "https://proxy.example/api"
        assert config.yandex.timeout == 5.0
        assert config.yandex.page_size == 50
        assert config.output.database == temp_dir.resolve() / "state" / "music.db"
        assert config.download == DownloadConfig(
            subdirectory="mp3", codec="mp3", threads=4, on_error="skip"
        )

    def test_env_token_wins(self, write_config, temp_dir, monkeypatch):
        """Test YANDEX_MUSIC_TOKEN overrides the file"""
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        path = write_config(MINIMAL_CONFIG.format(directory=temp_dir))
        assert load_config(path).yandex.token == "env-token"

    def test_token_only_from_env(self, write_config, temp_dir, monkeypatch):
        """Test the yandex section may be omitted when the env var is set"""
        monkeypatch.setenv(TOKEN_ENV_VAR, "env-token")
        path = write_config(f"output:\n  directory: \"{temp_dir}\"\n")
        assert load_config(path).yandex.token == "env-token"

    def test_home_is_expanded(self, write_config, monkeypatch, temp_dir):
        """Test ~ in the output directory"""
        monkeypatch.setenv("HOME", str(temp_dir))
        path = write_config('yandex:\n  token: "t"\noutput:\n  directory: "~/Music"\n')
        assert load_config(path).output.directory == (temp_dir / "Music").resolve()


class TestConfigErrors:
    """Test invalid configurations"""

    def test_missing_file(self, temp_dir):
        """Test a missing file names the path"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir / "config.yaml")
        assert exc_info.value.details["file_path"].endswith("config.yaml")

    def test_invalid_yaml(self, write_config):
        """Test a syntax error is a ConfigError"""
        with pytest.raises(ConfigError):
            load_config(write_config("output: [unclosed"))

    def test_not_a_mapping(self, write_config):
        """Test a YAML list is rejected"""
        with pytest.raises(ConfigError):
            load_config(write_config("- a\n- b\n"))

    def test_missing_output(self, write_config):
        """Test the output section is required"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config('yandex:\n  token: "t"\n'))
        assert exc_info.value.details["missing_section"] == "output"

    def test_missing_token(self, write_config, temp_dir):
        """Test no token anywhere is a ConfigError"""
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config(f'output:\n  directory: "{temp_dir}"\n'))
        assert exc_info.value.details["field"] == "yandex.token"

    @pytest.mark.parametrize("section, field, value", [
        ("yandex", "timeout", "0"),
        ("yandex", "timeout", "true"),
        ("yandex", "page_size", "-1"),
        ("yandex", "base_url", '"ftp://x"'),
        ("download", "threads", "0"),
        ("download", "on_error", '"ignore"'),
        ("download", "codec", '""'),
    ])
    def test_invalid_values(self, write_config, temp_dir, section, field, value):
        """Test each invalid field is reported by name"""
        yandex_extra = f"\n  {field}: {value}" if section == "yandex" else ""
        download_block = f"download:\n  {field}: {value}\n" if section == "download" else ""
        path = write_config(
            f'yandex:\n  token: "t"{yandex_extra}\n'
            f'output:\n  directory: "{temp_dir}"\n'
            f"{download_block}"
        )
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.details["field"] == f"{section}.{field}"
