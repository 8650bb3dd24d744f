"""Unit tests for Settings and the YAML configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config.loader import load_config, load_settings
from src.config.settings import Settings
from src.utils.errors import ConfigurationError

_ENV_VARS = ("ARCHIVE_ROOT", "REQUEST_DELAY", "TOPICS_PER_PAGE", "LOG_LEVEL", "APP_ENV")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate from the developer's environment and any local .env file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _yaml(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.archive_root == "data/archive"
        assert settings.topics_per_page == 30
        assert settings.storage_quota_bytes == 0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQUEST_DELAY", "2.5")
        assert Settings().request_delay == 2.5

    def test_pagination_config(self) -> None:
        config = Settings(topics_per_page=50, section_param="f").pagination_config()
        assert config.topics_per_page == 50
        assert config.section_param == "f"
        assert config.offset_param == "start"


class TestLoader:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings == Settings()

    def test_yaml_values_apply(self, tmp_path: Path) -> None:
        path = _yaml(
            tmp_path,
            "archive:\n  root: /srv/forum\n"
            "pagination:\n  topics_per_page: 25\n"
            "quota:\n  storage_quota_bytes: 1000\n",
        )
        settings = load_settings(path)
        assert settings.archive_root == "/srv/forum"
        assert settings.topics_per_page == 25
        assert settings.storage_quota_bytes == 1000

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _yaml(tmp_path, "archive:\n  root: /srv/forum\nfetch:\n  request_delay: 1.0\n")
        monkeypatch.setenv("ARCHIVE_ROOT", "/mnt/override")

        config = load_config(path)
        settings = load_settings(path)

        assert config["archive"]["root"] == "/mnt/override"
        assert settings.archive_root == "/mnt/override"
        assert settings.request_delay == 1.0

    def test_unknown_sections_are_kept_in_raw_config(self, tmp_path: Path) -> None:
        path = _yaml(tmp_path, "extra:\n  anything: true\n")
        assert load_config(path)["extra"] == {"anything": True}

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(_yaml(tmp_path, "archive: [unclosed\n"))

    def test_non_mapping_top_level(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(_yaml(tmp_path, "- a\n- b\n"))

    def test_invalid_value(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(_yaml(tmp_path, "pagination:\n  topics_per_page: 0\n"))

    def test_invalid_environment_value(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQUEST_DELAY", "soon")
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "absent.yaml"))
        with pytest.raises(ConfigurationError):
            load_settings(str(tmp_path / "absent.yaml"))

    def test_pagination_selector_from_yaml(self, tmp_path: Path) -> None:
        path = _yaml(tmp_path, "pagination:\n  selector: td.midtext\n")
        assert load_settings(path).pagination_config().pagination_selector == "td.midtext"
