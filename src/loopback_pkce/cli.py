"""Command-line interface for the loopback PKCE client.

Runs the browser authorization handshake and makes authorized API calls.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import typer

from loopback_pkce import __version__
from loopback_pkce.config import Config, load_config
from loopback_pkce.exceptions import ConfigurationError, PKCEError
from loopback_pkce.logging_config import get_logger, setup_logging
from loopback_pkce.oauth.client import PKCEClient
from loopback_pkce.oauth.token import AccessToken
from loopback_pkce.security import redact

app = typer.Typer(
    name="loopback-pkce",
    help="OAuth 2.0 Authorization Code + PKCE client with a loopback redirect listener",
    add_completion=False,
)

ConfigOption = typer.Option(
    None, "--config", "-c", help="Path to configuration file (JSON or YAML)"
)
ClientIdOption = typer.Option(None, "--client-id", help="OAuth client identifier")
CallbackOption = typer.Option(
    None, "--callback-url", help="Registered redirect URI, e.g. http://localhost:49918/callback"
)
ScopeOption = typer.Option(None, "--scope", "-s", help="Scope to request (repeatable)")
NoBrowserOption = typer.Option(
    False, "--no-browser", help="Print the authorization URL without opening a browser"
)
TimeoutOption = typer.Option(
    None, "--timeout", "-t", help="Seconds to wait for the browser redirect"
)
LogLevelOption = typer.Option(
    None, "--log-level", "-l", help="Log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"loopback-pkce version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Loopback PKCE CLI."""


def _load(
    config_path: str | None,
    client_id: str | None,
    callback_url: str | None,
    scope: list[str] | None,
    no_browser: bool,
    timeout: float | None,
    log_level: str | None,
) -> Config:
    cli_args: dict[str, Any] = {
        "client_id": client_id,
        "callback_url": callback_url,
        "scopes": scope or None,
        "callback_timeout": timeout,
        "log_level": log_level,
    }
    if no_browser:
        cli_args["open_browser"] = False

    config = load_config(path=config_path, cli_args=cli_args)
    setup_logging(config)
    return config


def _print_authorization_url(url: str) -> None:
    typer.echo("Continue authentication in your browser:", err=True)
    typer.echo(url, err=True)


def _run(coro: Any) -> Any:
    """Run a coroutine and map package errors to exit codes."""
    logger = get_logger(__name__)
    try:
        return asyncio.run(coro)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from None
    except PKCEError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        logger.info("Authorization cancelled (keyboard interrupt)")
        raise typer.Exit(code=1) from None


def _describe(token: AccessToken, show_token: bool) -> None:
    typer.echo(f"Access token is {'valid' if token.is_valid() else 'not valid'}")
    typer.echo(f"Token type: {token.token_type}")
    typer.echo(f"Scope: {token.scope or '-'}")
    typer.echo(f"Expires at: {token.expires_at.isoformat()}")
    typer.echo(f"Access token: {token.value if show_token else redact(token.value)}")
    typer.echo(
        f"Refresh token: {token.refresh_token if show_token else redact(token.refresh_token)}"
    )


async def _login(config: Config) -> AccessToken:
    async with PKCEClient.from_config(
        config, on_authorization_url=_print_authorization_url
    ) as client:
        return await client.request_access_token(config.scopes or None)


async def _fetch(config: Config, path: str, method: str, refresh: bool) -> Any:
    async with PKCEClient.from_config(
        config, on_authorization_url=_print_authorization_url
    ) as client:
        token = await client.request_access_token(config.scopes or None)
        if refresh:
            token = await token.refresh()
        return await token.fetch(path, method=method)


@app.command()
def login(
    config_path: str | None = ConfigOption,
    client_id: str | None = ClientIdOption,
    callback_url: str | None = CallbackOption,
    scope: list[str] | None = ScopeOption,
    no_browser: bool = NoBrowserOption,
    timeout: float | None = TimeoutOption,
    log_level: str | None = LogLevelOption,
    show_token: bool = typer.Option(
        False, "--show-token", help="Print token values instead of redacting them"
    ),
) -> None:
    """Authorize in the browser and report the granted access token."""
    try:
        config = _load(config_path, client_id, callback_url, scope, no_browser, timeout, log_level)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from None

    token = _run(_login(config))
    _describe(token, show_token)


@app.command()
def fetch(
    path: str = typer.Argument(..., help="API path, resolved against the API base URL"),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method"),
    refresh: bool = typer.Option(
        False, "--refresh", help="Refresh the token once before calling the API"
    ),
    config_path: str | None = ConfigOption,
    client_id: str | None = ClientIdOption,
    callback_url: str | None = CallbackOption,
    scope: list[str] | None = ScopeOption,
    no_browser: bool = NoBrowserOption,
    timeout: float | None = TimeoutOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Authorize, then call the resource API and print the JSON response."""
    try:
        config = _load(config_path, client_id, callback_url, scope, no_browser, timeout, log_level)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from None

    result = _run(_fetch(config, path, method.upper(), refresh))
    typer.echo(json.dumps(result, indent=2))


@app.command()
def version() -> None:
    """Print version information."""
    typer.echo(f"loopback-pkce version {__version__}")
    typer.echo(f"Python {sys.version}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
