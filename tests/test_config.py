"""Tests for runtime configuration and logging setup."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from zaku.config import APP_NAME, load_settings
from zaku.logging_utils import setup_logging


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


class TestLoadSettings:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ZAKU_DATA_DIR", str(tmp_path / "zaku"))
        monkeypatch.setenv("ZAKU_LOG_LEVEL", "debug")
        settings = load_settings()
        assert settings.data_dir == tmp_path / "zaku"
        assert settings.log_level == logging.DEBUG

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ZAKU_DATA_DIR", raising=False)
        monkeypatch.delenv("ZAKU_LOG_LEVEL", raising=False)
        settings = load_settings()
        assert APP_NAME in Path(settings.data_dir).parts
        assert settings.log_level == logging.INFO

    @pytest.mark.parametrize("value,expected", [
        ("10", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("bogus", logging.INFO),
    ])
    def test_log_level_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("ZAKU_LOG_LEVEL", value)
        assert load_settings().log_level == expected

    def test_cached(self):
        assert load_settings() is load_settings()


class TestSetupLogging:
    def test_configures_root_logger(self):
        with patch("zaku.logging_utils.logging.basicConfig") as basic_config:
            setup_logging(logging.WARNING, force=True)
        _, kwargs = basic_config.call_args
        assert kwargs["level"] == logging.WARNING
        assert kwargs["force"] is True
        assert "%(name)s" in kwargs["format"]
