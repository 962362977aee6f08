"""Tests for settings and logging configuration."""

import logging
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from rabbitmq_session.core.config import Settings, get_settings
from rabbitmq_session.core.logging import CONFIG_DIR, setup_logging


class TestSettings:
    """Test Settings defaults and overrides."""

    def test_defaults(self, monkeypatch):
        """Test explicit defaults when nothing is configured."""
        for name in ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.RABBITMQ_HOST == "localhost"
        assert settings.RABBITMQ_PORT == 5672
        assert settings.RABBITMQ_USER == "guest"
        assert settings.RABBITMQ_VHOST == "/"
        assert settings.RABBITMQ_POLL_INTERVAL == 1.0
        assert settings.RABBITMQ_EXCHANGE_TYPE == "direct"

    def test_environment_override(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("RABBITMQ_HOST", "rabbit.internal")
        monkeypatch.setenv("RABBITMQ_PORT", "5673")
        monkeypatch.setenv("RABBITMQ_QUEUE", "orders.created")

        settings = Settings(_env_file=None)

        assert settings.RABBITMQ_HOST == "rabbit.internal"
        assert settings.RABBITMQ_PORT == 5673
        assert settings.RABBITMQ_QUEUE == "orders.created"

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, port):
        """Test ports outside 1-65535 are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, RABBITMQ_PORT=port)

    def test_invalid_poll_interval(self):
        """Test the consume loop wait must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, RABBITMQ_POLL_INTERVAL=0)

    def test_get_settings_is_cached(self):
        """Test get_settings returns one instance per process."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestLogging:
    """Test YAML logging setup."""

    def test_setup_from_yaml(self, tmp_path, monkeypatch):
        """Test a YAML config file is applied with dictConfig."""
        monkeypatch.delenv("LOG_CFG", raising=False)
        config = tmp_path / "logging.yaml"
        config.write_text(
            "version: 1\n"
            "disable_existing_loggers: false\n"
            "loggers:\n"
            "  rabbitmq_session.tests:\n"
            "    level: ERROR\n"
        )

        setup_logging(config_path=str(config))

        assert logging.getLogger("rabbitmq_session.tests").level == logging.ERROR

    def test_env_path_takes_precedence(self, tmp_path, monkeypatch):
        """Test LOG_CFG overrides the path argument."""
        config = tmp_path / "env.yaml"
        config.write_text(
            "version: 1\n"
            "disable_existing_loggers: false\n"
            "loggers:\n"
            "  rabbitmq_session.envtest:\n"
            "    level: CRITICAL\n"
        )
        monkeypatch.setenv("LOG_CFG", str(config))

        setup_logging(config_path=str(tmp_path / "ignored.yaml"))

        assert logging.getLogger("rabbitmq_session.envtest").level == logging.CRITICAL

    @patch("rabbitmq_session.core.logging.logging.basicConfig")
    def test_missing_file_falls_back(self, mock_basic_config, tmp_path, monkeypatch):
        """Test a missing config file falls back to basic configuration."""
        monkeypatch.delenv("LOG_CFG", raising=False)

        setup_logging(config_path=str(tmp_path / "missing.yaml"))

        mock_basic_config.assert_called_once_with(level=logging.INFO)

    @patch("rabbitmq_session.core.logging.logging.basicConfig")
    def test_invalid_file_falls_back(self, mock_basic_config, tmp_path, monkeypatch):
        """Test a config dictConfig rejects falls back to basic configuration."""
        monkeypatch.delenv("LOG_CFG", raising=False)
        config = tmp_path / "logging.yaml"
        config.write_text("version: 99\n")

        setup_logging(config_path=str(config), default_level=logging.DEBUG)

        mock_basic_config.assert_called_once_with(level=logging.DEBUG)

    def test_packaged_config_quiets_pika(self):
        """Test both shipped configs keep pika at WARNING or above."""
        for name in ("logging.yaml", "logging.production.yaml"):
            config = yaml.safe_load((CONFIG_DIR / name).read_text())
            level = logging.getLevelName(config["loggers"]["pika"]["level"])
            assert level >= logging.WARNING
