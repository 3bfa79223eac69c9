"""Tests for configuration module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from loopback_pkce.config import (
    DEFAULT_AUTHORIZATION_ENDPOINT,
    DEFAULT_CALLBACK_URL,
    Config,
    LogLevel,
    load_config,
)
from loopback_pkce.exceptions import ConfigurationError


class TestConfig:
    """Tests for Config model."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = Config()

        assert config.log_level == LogLevel.INFO
        assert config.client_id is None
        assert config.callback_url == DEFAULT_CALLBACK_URL
        assert config.authorization_endpoint == DEFAULT_AUTHORIZATION_ENDPOINT
        assert config.scopes == []
        assert config.open_browser is True
        assert config.callback_timeout is None

    def test_log_level_normalization(self) -> None:
        """Test that log level strings are normalized to uppercase."""
        config = Config(log_level="debug")  # type: ignore[arg-type]
        assert config.log_level == LogLevel.DEBUG

    def test_scopes_from_string(self) -> None:
        """Test that scope strings are split on spaces and commas."""
        config = Config(scopes="user-read-email, user-read-private  playlist-read")  # type: ignore[arg-type]
        assert config.scopes == ["user-read-email", "user-read-private", "playlist-read"]

    def test_invalid_callback_url(self) -> None:
        """Test that callback URLs a listener cannot bind are rejected."""
        with pytest.raises(ValueError, match="http://"):
            Config(callback_url="https://localhost:49918/callback")

    def test_api_base_url_trailing_slash(self) -> None:
        """Test that the API base keeps relative paths beneath it."""
        config = Config(api_base_url="https://api.example.com/v1")
        assert config.api_base_url == "https://api.example.com/v1/"

    def test_timeout_validation(self) -> None:
        """Test that timeouts must be positive."""
        with pytest.raises(ValueError):
            Config(callback_timeout=0)
        with pytest.raises(ValueError):
            Config(http_timeout=-1)


class TestConfigLoading:
    """Tests for configuration loading."""

    def test_load_config_defaults(self) -> None:
        """Test loading configuration with defaults."""
        config = load_config()
        assert config.callback_url == DEFAULT_CALLBACK_URL

    def test_load_config_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("LOOPBACK_PKCE_CLIENT_ID", "env-client")
        monkeypatch.setenv("LOOPBACK_PKCE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOOPBACK_PKCE_SCOPES", "a b")
        monkeypatch.setenv("LOOPBACK_PKCE_OPEN_BROWSER", "false")
        monkeypatch.setenv("LOOPBACK_PKCE_CALLBACK_TIMEOUT", "30")

        config = load_config()

        assert config.client_id == "env-client"
        assert config.log_level == LogLevel.DEBUG
        assert config.scopes == ["a", "b"]
        assert config.open_browser is False
        assert config.callback_timeout == 30.0

    def test_cli_args_override_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that CLI args override environment variables."""
        monkeypatch.setenv("LOOPBACK_PKCE_CLIENT_ID", "env-client")

        config = load_config(cli_args={"client_id": "cli-client", "scopes": None})

        assert config.client_id == "cli-client"

    def test_env_overrides_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that environment variables override file values."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"client_id": "file-client", "scopes": ["x"]}))
        monkeypatch.setenv("LOOPBACK_PKCE_CLIENT_ID", "env-client")

        config = load_config(path=path)

        assert config.client_id == "env-client"
        assert config.scopes == ["x"]

    def test_load_yaml_file(self, tmp_path: Path) -> None:
        """Test loading a YAML configuration file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "client_id: yaml-client\n"
            "callback_url: http://127.0.0.1:50000/cb\n"
            "scopes:\n  - user-read-email\n"
        )

        config = load_config(path=path)

        assert config.client_id == "yaml-client"
        assert config.callback_url == "http://127.0.0.1:50000/cb"
        assert config.scopes == ["user-read-email"]

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(path=tmp_path / "missing.json")

    def test_unsupported_file(self, tmp_path: Path) -> None:
        """Test that unknown file types are rejected."""
        path = tmp_path / "config.toml"
        path.write_text("client_id = 'x'")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            load_config(path=path)

    def test_invalid_raises_configuration_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that invalid configuration raises ConfigurationError."""
        monkeypatch.setenv("LOOPBACK_PKCE_CALLBACK_URL", "ftp://localhost/callback")

        with pytest.raises(ConfigurationError, match="validation failed"):
            load_config()
