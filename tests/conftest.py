"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import socket

import pytest

from loopback_pkce.config import Config, LogLevel

AUTHORIZE_URL = "https://auth.example.com/authorize"
TOKEN_URL = "https://auth.example.com/api/token"
API_BASE_URL = "https://api.example.com/v1/"


@pytest.fixture
def free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep LOOPBACK_PKCE_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("LOOPBACK_PKCE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def default_config() -> Config:
    """Create a default configuration for testing."""
    return Config()


@pytest.fixture
def client_config(free_port: int) -> Config:
    """Create a configuration pointing at test endpoints."""
    return Config(
        log_level=LogLevel.DEBUG,
        client_id="abc123",
        callback_url=f"http://127.0.0.1:{free_port}/callback",
        authorization_endpoint=AUTHORIZE_URL,
        token_endpoint=TOKEN_URL,
        api_base_url=API_BASE_URL,
        open_browser=False,
    )
