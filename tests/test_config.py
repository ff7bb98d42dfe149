"""Tests for settings and logging configuration."""

import pytest
import structlog

from blockgraph import config
from blockgraph.config import Settings, configure_logging, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("BLOCKGRAPH_LOG_LEVEL", "BLOCKGRAPH_LOG_JSON", "BLOCKGRAPH_VALIDATE_ATTRIBUTES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_settings", None)
    return monkeypatch


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env()

        assert settings == Settings(log_level="INFO", log_json=False, validate_attributes=True)

    def test_reads_environment(self, clean_env):
        clean_env.setenv("BLOCKGRAPH_LOG_LEVEL", "debug")
        clean_env.setenv("BLOCKGRAPH_LOG_JSON", "yes")
        clean_env.setenv("BLOCKGRAPH_VALIDATE_ATTRIBUTES", "0")

        settings = Settings.from_env()

        assert settings.log_level == "DEBUG"
        assert settings.log_json is True
        assert settings.validate_attributes is False

    def test_invalid_level(self, clean_env):
        clean_env.setenv("BLOCKGRAPH_LOG_LEVEL", "loud")

        with pytest.raises(ValueError, match="BLOCKGRAPH_LOG_LEVEL"):
            Settings.from_env()

    def test_get_settings_is_cached(self, clean_env):
        first = get_settings()
        clean_env.setenv("BLOCKGRAPH_LOG_LEVEL", "ERROR")

        assert get_settings() is first


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_renderer(self, reset_structlog):
        configure_logging(Settings(log_json=True))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self, reset_structlog):
        configure_logging(Settings(log_level="WARNING"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
