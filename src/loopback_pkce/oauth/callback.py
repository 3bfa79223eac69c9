"""Loopback listener for the OAuth redirect.

A short-lived HTTP server bound to the callback URL's host and port.
It inspects every request the browser (or anything else) sends to it and
closes itself once a request carrying the expected state and an
authorization code arrives.
"""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

import uvicorn
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from loopback_pkce.exceptions import AuthorizationError, ConfigurationError
from loopback_pkce.logging_config import get_logger
from loopback_pkce.security import constant_time_equals

if TYPE_CHECKING:
    from starlette.requests import Request

logger = get_logger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Seconds uvicorn may spend finishing the success response after capture
SHUTDOWN_GRACE = 5


@dataclass(frozen=True)
class CallbackTarget:
    """Where the listener binds and which path it answers on."""

    host: str
    port: int
    path: str


def parse_callback_url(url: str) -> CallbackTarget:
    """Validate a callback URL and split it into host, port and path.

    Args:
        url: Absolute http URL registered with the provider

    Returns:
        CallbackTarget for the listener

    Raises:
        ConfigurationError: If the URL cannot be served by a loopback listener
    """
    parsed = urlsplit(url)
    if parsed.scheme != "http":
        msg = f"Callback URL must be an absolute http:// URL: {url!r}"
        raise ConfigurationError(msg)
    if not parsed.hostname:
        msg = f"Callback URL has no host: {url!r}"
        raise ConfigurationError(msg)
    try:
        port = parsed.port
    except ValueError as e:
        msg = f"Callback URL has an invalid port: {url!r}"
        raise ConfigurationError(msg) from e
    if port == 0:
        msg = f"Callback URL needs a fixed port, not 0: {url!r}"
        raise ConfigurationError(msg)

    return CallbackTarget(
        host=parsed.hostname,
        port=port if port is not None else 80,
        path=unquote(parsed.path) or "/",
    )


class CallbackServer:
    """Single-use listener that captures one authorization code.

    The server starts out listening and becomes closed either when a
    request with the expected state and a code is handled, or when
    close() is called. Only the first qualifying request is captured;
    anything arriving afterwards is answered with 410 Gone.
    """

    def __init__(self, callback_url: str, authorization_url: str, expected_state: str) -> None:
        """Initialize the listener.

        Args:
            callback_url: Registered redirect URI
            authorization_url: URL to send stale or foreign callbacks back to
            expected_state: State value issued with the authorization request
        """
        self.target = parse_callback_url(callback_url)
        self.authorization_url = authorization_url
        self._expected_state = expected_state

        self._code: str | None = None
        self._closed = False
        self._timed_out = False
        self._last_error: str | None = None
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None

        self.app = Starlette(
            routes=[Route("/{path:path}", self._handle_request, methods=ALL_METHODS)]
        )

    @property
    def code(self) -> str | None:
        """Captured authorization code, if any."""
        return self._code

    @property
    def is_closed(self) -> bool:
        """Whether the listener has reached its terminal state."""
        return self._closed

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    def bind(self) -> None:
        """Bind and listen on the callback host and port.

        Raises:
            ConfigurationError: If the address is in use or cannot be bound
        """
        if self._socket is not None:
            msg = "Callback listener is already bound"
            raise ConfigurationError(msg)
        if self._closed:
            msg = "Callback listener is closed"
            raise ConfigurationError(msg)

        host, port = self.target.host, self.target.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            self._socket = socket.create_server((host, port), family=family)
        except OSError as e:
            logger.error("Cannot bind callback listener on %s:%d: %s", host, port, e)
            msg = f"Cannot listen on {host}:{port}: {e}"
            raise ConfigurationError(msg) from e

        logger.debug("Callback listener bound on %s:%d%s", host, port, self.target.path)

    def close(self) -> None:
        """Abort the listener.

        Safe to call more than once and before or after serving starts.
        A pending wait_for_code() then fails with "no code received".
        """
        if not self._closed:
            logger.debug("Closing callback listener")
        self._closed = True
        if self._server is not None:
            self._server.should_exit = True
        else:
            # Not serving yet, nothing else holds the socket
            self._release()

    async def wait_for_code(self, timeout: float | None = None) -> str:
        """Serve callback requests until a code is captured or the listener closes.

        Args:
            timeout: Optional seconds to wait before giving up (None waits forever)

        Returns:
            The captured authorization code

        Raises:
            ConfigurationError: If the listener cannot be bound
            AuthorizationError: If the listener closes without a code
        """
        if not self._closed and self._socket is None:
            self.bind()

        timer: asyncio.TimerHandle | None = None
        if timeout is not None:
            timer = asyncio.get_running_loop().call_later(timeout, self._expire)

        try:
            if not self._closed and self._socket is not None:
                self._server = uvicorn.Server(
                    uvicorn.Config(
                        app=self.app,
                        log_config=None,
                        access_log=False,
                        lifespan="off",
                        timeout_graceful_shutdown=SHUTDOWN_GRACE,
                    )
                )
                await self._server.serve(sockets=[self._socket])
        finally:
            if timer is not None:
                timer.cancel()
            self._closed = True
            self._stop_listening()
            self._release()

        if self._code is None:
            msg = "No authorization code received"
            if self._timed_out:
                msg += f" within {timeout} seconds"
            if self._last_error:
                msg += f" (last provider error: {self._last_error})"
            logger.warning(msg)
            raise AuthorizationError(msg, error=self._last_error)

        return self._code

    def _expire(self) -> None:
        logger.warning("Timed out waiting for the authorization redirect")
        self._timed_out = True
        self.close()

    def _stop_listening(self) -> None:
        """Detach uvicorn's listeners from the socket.

        uvicorn only closes them when serve() returns normally. If the
        waiting task was cancelled they would otherwise keep accepting
        on the descriptor after the socket is closed.
        """
        if self._server is None:
            return
        for listener in getattr(self._server, "servers", []):
            listener.close()
        for connection in list(self._server.server_state.connections):
            connection.shutdown()

    def _release(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._server = None

    def _capture(self, code: str) -> bool:
        """Record the authorization code and request shutdown.

        The only place the code is assigned. Returns False if a code was
        already captured or the listener was closed.
        """
        if self._closed or self._code is not None:
            return False
        self._code = code
        self.close()
        return True

    def _redirect_to_authorization(self) -> Response:
        return PlainTextResponse(
            f"Redirecting to {self.authorization_url}\r\n",
            status_code=307,
            headers={"Location": self.authorization_url},
        )

    async def _handle_request(self, request: Request) -> Response:
        if self._closed:
            return PlainTextResponse("Gone\r\n", status_code=410)

        if request.method != "GET":
            return PlainTextResponse(
                "Method Not Allowed\r\n", status_code=405, headers={"Allow": "GET"}
            )

        params = request.query_params
        path = request.scope["path"]

        if path != self.target.path:
            if path == "/" and "state" not in params:
                # Opening the bare origin starts the handshake
                return self._redirect_to_authorization()
            logger.debug("Ignoring request for %s", path)
            return PlainTextResponse("Not Found\r\n", status_code=404)


        error = params.get("error")
        if error is not None:
            self._last_error = error
            description = params.get("error_description")
            logger.warning("Provider returned error %s: %s", error, description or "-")
            body = f"Error({error}): Authorization Failed"
            if description:
                body += f" - {description}"
            return PlainTextResponse(f"{body}\r\n", status_code=400)

        state = params.get("state")
        if not constant_time_equals(state, self._expected_state):
            logger.info(
                "Callback state %s does not match, redirecting to authorization",
                state[:8] if state else "<missing>",
            )
            return self._redirect_to_authorization()

        code = params.get("code")
        if not code:
            logger.warning("Callback with matching state carried no code")
            return PlainTextResponse("Missing authorization code\r\n", status_code=400)

        if not self._capture(code):
            return PlainTextResponse("Gone\r\n", status_code=410)

        logger.info("Authorization code received")
        return PlainTextResponse("Success! You can close this window.\r\n", status_code=200)
