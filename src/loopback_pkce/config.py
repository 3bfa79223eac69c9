"""Configuration management for the loopback PKCE client.

Provides configuration loading from environment variables, .env files,
and optional configuration files with proper precedence handling.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from loopback_pkce.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LOOPBACK_PKCE_"

DEFAULT_AUTHORIZATION_ENDPOINT = "https://accounts.spotify.com/authorize"
DEFAULT_TOKEN_ENDPOINT = "https://accounts.spotify.com/api/token"
DEFAULT_API_BASE_URL = "https://api.spotify.com/v1/"
DEFAULT_CALLBACK_URL = "http://localhost:49918/callback"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Config(BaseModel):
    """Configuration model for the loopback PKCE client.

    Configuration can be loaded from:
    - Environment variables with LOOPBACK_PKCE_ prefix
    - Optional .env file in the working directory
    - Optional configuration file passed via CLI
    """

    app_name: str = Field(default="loopback-pkce", description="Application name")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    # Client identity, must match the provider's app registration
    client_id: str | None = Field(default=None, description="OAuth client identifier")
    callback_url: str = Field(
        default=DEFAULT_CALLBACK_URL,
        description="Registered redirect URI; its host:port is bound locally",
    )
    scopes: list[str] = Field(default_factory=list, description="Requested scopes")

    # Provider endpoints
    authorization_endpoint: str = Field(
        default=DEFAULT_AUTHORIZATION_ENDPOINT, description="OAuth authorization endpoint"
    )
    token_endpoint: str = Field(
        default=DEFAULT_TOKEN_ENDPOINT, description="OAuth token endpoint"
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, description="Base URL for authorized API calls"
    )

    # Handshake behavior
    open_browser: bool = Field(
        default=True, description="Open the authorization URL in a web browser"
    )
    callback_timeout: float | None = Field(
        default=None, gt=0, description="Seconds to wait for the redirect (None waits forever)"
    )
    http_timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout")

    model_config = {
        "validate_assignment": True,
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: Any) -> Any:
        """Accept scopes as a space or comma separated string."""
        if isinstance(v, str):
            return [scope for scope in re.split(r"[\s,]+", v) if scope]
        return v

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, v: str) -> str:
        """Ensure the callback URL can be bound by the local listener."""
        from loopback_pkce.oauth.callback import parse_callback_url

        try:
            parse_callback_url(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from None
        return v

    @field_validator("api_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Keep relative API paths resolving beneath the base path."""
        return v if v.endswith("/") else f"{v}/"


def _get_env_value(key: str, prefix: str = ENV_PREFIX) -> str | None:
    """Get environment variable value with prefix."""
    return os.environ.get(f"{prefix}{key.upper()}")


def _load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    env_mapping = {
        "app_name": "APP_NAME",
        "log_level": "LOG_LEVEL",
        "client_id": "CLIENT_ID",
        "callback_url": "CALLBACK_URL",
        "scopes": "SCOPES",
        "authorization_endpoint": "AUTHORIZATION_ENDPOINT",
        "token_endpoint": "TOKEN_ENDPOINT",
        "api_base_url": "API_BASE_URL",
        "open_browser": "OPEN_BROWSER",
        "callback_timeout": "CALLBACK_TIMEOUT",
        "http_timeout": "HTTP_TIMEOUT",
    }

    config: dict[str, Any] = {}
    for field_name, env_suffix in env_mapping.items():
        value = _get_env_value(env_suffix)
        if value is None:
            continue
        if field_name == "open_browser":
            config[field_name] = value.lower() in ("true", "1", "yes")
            continue
        if field_name in ("callback_timeout", "http_timeout"):
            with contextlib.suppress(ValueError):
                value = float(value)  # type: ignore[assignment]
        config[field_name] = value

    return config


def _load_file_config(path: str | Path) -> dict[str, Any]:
    """Load configuration from a file (JSON or YAML)."""
    path = Path(path)
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise ConfigurationError(msg)

    suffix = path.suffix.lower()
    content = path.read_text()

    if suffix == ".json":
        return dict(json.loads(content))

    if suffix in (".yaml", ".yml"):
        import yaml

        return dict(yaml.safe_load(content) or {})

    msg = f"Unsupported configuration file format: {suffix}"
    raise ConfigurationError(msg)


def _redact_for_log(key: str, value: Any) -> str:
    """Redact identifying values for logging."""
    if key == "client_id" and value:
        return "***"
    return str(value)


def load_config(
    path: str | Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> Config:
    """Load and validate configuration.

    Precedence (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Configuration file
    4. Model defaults

    Args:
        path: Optional path to configuration file
        cli_args: Optional CLI argument overrides

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    load_dotenv()

    config_dict: dict[str, Any] = {}
    if path:
        logger.debug("Loading configuration from file: %s", path)
        config_dict.update(_load_file_config(path))

    for key, value in _load_env_config().items():
        config_dict[key] = value
        logger.debug("Config %s from environment: %s", key, _redact_for_log(key, value))

    if cli_args:
        for key, value in cli_args.items():
            if value is not None:
                config_dict[key] = value
                logger.debug("Config %s from CLI: %s", key, _redact_for_log(key, value))

    try:
        return Config(**config_dict)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigurationError(msg) from e


def config_from_env() -> Config:
    """Load configuration from environment variables only.

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    return load_config()
