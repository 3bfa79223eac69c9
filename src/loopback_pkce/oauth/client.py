"""PKCE client orchestrating the browser authorization handshake."""

from __future__ import annotations

import inspect
import webbrowser
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

import httpx

from loopback_pkce.config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_AUTHORIZATION_ENDPOINT,
    DEFAULT_TOKEN_ENDPOINT,
)
from loopback_pkce.exceptions import ConfigurationError
from loopback_pkce.logging_config import get_logger
from loopback_pkce.oauth.authorization import create_authorization_request
from loopback_pkce.oauth.callback import CallbackServer, parse_callback_url
from loopback_pkce.oauth.token import AccessToken
from loopback_pkce.security import redact

if TYPE_CHECKING:
    from types import TracebackType

    from loopback_pkce.config import Config

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

AuthorizationURLHandler = Callable[[str], Awaitable[None] | None]


class PKCEClient:
    """OAuth 2.0 public client using Authorization Code with PKCE.

    Each call to request_access_token() owns its own verifier, state and
    loopback listener, so separate clients bound to different ports can
    run side by side.
    """

    def __init__(
        self,
        client_id: str,
        callback_url: str,
        *,
        authorization_endpoint: str = DEFAULT_AUTHORIZATION_ENDPOINT,
        token_endpoint: str = DEFAULT_TOKEN_ENDPOINT,
        api_base_url: str = DEFAULT_API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        http_timeout: float = DEFAULT_TIMEOUT,
        on_authorization_url: AuthorizationURLHandler | None = None,
        open_browser: bool = False,
        callback_timeout: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth client identifier
            callback_url: Redirect URI registered with the provider
            authorization_endpoint: Provider authorization endpoint
            token_endpoint: Provider token endpoint
            api_base_url: Base URL that AccessToken.fetch() paths resolve against
            http_client: Optional custom HTTP client
            http_timeout: Timeout for HTTP requests when the client is owned
            on_authorization_url: Called with the URL the user must visit
            open_browser: Also open the URL with the default web browser
            callback_timeout: Seconds to wait for the redirect (None waits forever)

        Raises:
            ConfigurationError: If client_id is empty or callback_url is malformed
        """
        if not client_id:
            msg = "client_id is required"
            raise ConfigurationError(msg)
        parse_callback_url(callback_url)

        self.client_id = client_id
        self.callback_url = callback_url
        self.authorization_endpoint = authorization_endpoint
        self.token_endpoint = token_endpoint
        self.api_base_url = api_base_url
        self.on_authorization_url = on_authorization_url
        self.open_browser = open_browser
        self.callback_timeout = callback_timeout
        self._http_timeout = http_timeout
        self._http_client = http_client
        self._owns_client = http_client is None
        self._callback_server: CallbackServer | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        on_authorization_url: AuthorizationURLHandler | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> PKCEClient:
        """Create a client from loaded configuration.

        Raises:
            ConfigurationError: If no client_id is configured
        """
        if not config.client_id:
            msg = "client_id is not configured (set LOOPBACK_PKCE_CLIENT_ID)"
            raise ConfigurationError(msg)

        return cls(
            config.client_id,
            config.callback_url,
            authorization_endpoint=config.authorization_endpoint,
            token_endpoint=config.token_endpoint,
            api_base_url=config.api_base_url,
            http_client=http_client,
            http_timeout=config.http_timeout,
            on_authorization_url=on_authorization_url,
            open_browser=config.open_browser,
            callback_timeout=config.callback_timeout,
        )

    async def get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client used for provider calls."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._http_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> PKCEClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def callback_server(self) -> CallbackServer | None:
        """Listener of the authorization attempt in progress, if any."""
        return self._callback_server

    def abort(self) -> None:
        """Close the listener of the attempt in progress, if any.

        The pending request_access_token() call fails with
        AuthorizationError instead of waiting for a redirect.
        """
        if self._callback_server is not None:
            logger.info("Aborting authorization attempt")
            self._callback_server.close()

    async def request_access_token(self, scopes: Sequence[str] | None = None) -> AccessToken:
        """Run the full authorization handshake and return an AccessToken.

        Suspends until the user completes (or abandons) consent in a browser.

        Args:
            scopes: Optional scopes to request

        Returns:
            AccessToken for the authorizing user

        Raises:
            ConfigurationError: If an attempt is already running or the
                callback port cannot be bound
            AuthorizationError: If no authorization code is received
            TokenExchangeError: If the provider rejects the code exchange
        """
        if self._callback_server is not None:
            msg = "An authorization attempt is already in progress for this client"
            raise ConfigurationError(msg)

        request = create_authorization_request(
            self.authorization_endpoint,
            self.client_id,
            self.callback_url,
            scopes,
        )
        server = CallbackServer(self.callback_url, request.url, request.state)
        server.bind()
        self._callback_server = server

        try:
            await self._announce(request.url)
            code = await server.wait_for_code(timeout=self.callback_timeout)
        finally:
            server.close()
            self._callback_server = None

        logger.debug(
            "Exchanging authorization code %s for client %s",
            redact(code),
            redact(self.client_id),
        )
        return await AccessToken.exchange(
            self,
            "authorization_code",
            {
                "code": code,
                "code_verifier": request.pkce.code_verifier,
                "redirect_uri": self.callback_url,
            },
        )

    async def _announce(self, url: str) -> None:
        if self.on_authorization_url is not None:
            result = self.on_authorization_url(url)
            if inspect.isawaitable(result):
                await result
        else:
            logger.info("Continue authentication at %s", url)

        if self.open_browser:
            try:
                opened = webbrowser.open(url)
            except webbrowser.Error as e:
                logger.warning("Could not open web browser: %s", e)
            else:
                if not opened:
                    logger.warning("No web browser available; open the URL manually")
