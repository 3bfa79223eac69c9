"""Access tokens issued by the provider's token endpoint.

An AccessToken is an immutable value. Refreshing one produces a new
instance; the original keeps its fields and stays usable until its own
expiry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx

from loopback_pkce.exceptions import APIError, TokenExchangeError
from loopback_pkce.logging_config import get_logger
from loopback_pkce.security import mask_sensitive_data

if TYPE_CHECKING:
    from loopback_pkce.oauth.client import PKCEClient

logger = get_logger(__name__)

# Used when the token response omits expires_in
DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class AccessToken:
    """A bearer credential for the resource API.

    Attributes:
        value: The access token string
        expires_in: Lifetime in seconds, counted from issued_at
        refresh_token: Token that can mint a replacement access token
        token_type: How the token is presented (always "Bearer")
        scope: Space-separated scopes granted to this token
        issued_at: When this instance was created locally
    """

    value: str
    expires_in: int
    refresh_token: str | None
    token_type: str = "Bearer"
    scope: str = ""
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    client: PKCEClient | None = field(default=None, repr=False, compare=False)

    @property
    def expires_at(self) -> datetime:
        """Point in time after which the token is no longer valid."""
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_valid(self) -> bool:
        """Return False if the token has expired."""
        return self.expires_at > datetime.now(UTC)

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.value}"

    @classmethod
    def from_token_response(
        cls,
        response: dict[str, Any],
        client: PKCEClient | None = None,
        refresh_token: str | None = None,
    ) -> AccessToken:
        """Create an AccessToken from a successful token endpoint response.

        Args:
            response: Decoded JSON body of the token endpoint
            client: Client that requested the token
            refresh_token: Fallback when the response carries none

        Returns:
            AccessToken stamped with the current time

        Raises:
            TokenExchangeError: If expires_in is not a number
        """
        expires_in = response.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN
        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError) as e:
            raise TokenExchangeError(
                "invalid_response", f"Token response has invalid expires_in: {expires_in!r}"
            ) from e

        return cls(
            value=response["access_token"],
            expires_in=lifetime,
            refresh_token=response.get("refresh_token") or refresh_token,
            token_type=response.get("token_type") or "Bearer",
            scope=response.get("scope") or "",
            client=client,
        )

    @classmethod
    async def exchange(
        cls,
        client: PKCEClient,
        grant_type: str,
        params: dict[str, str],
    ) -> AccessToken:
        """Request a token from the token endpoint.

        Shared by the authorization code exchange and refresh. The form
        body is ``client_id``, ``grant_type`` and the grant specific params.

        Args:
            client: Client whose identity and endpoints are used
            grant_type: ``authorization_code`` or ``refresh_token``
            params: Additional form parameters for the grant

        Returns:
            A new AccessToken

        Raises:
            TokenExchangeError: If the provider reports an error or the
                response cannot be used
        """
        http_client = await client.get_http_client()
        data = {"client_id": client.client_id, "grant_type": grant_type, **params}

        logger.debug(
            "Requesting token (grant_type: %s, params: %s)",
            grant_type,
            mask_sensitive_data(params),
        )

        try:
            response = await http_client.post(
                client.token_endpoint,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("Token request failed: %s", e)
            raise TokenExchangeError("request_failed", str(e)) from e

        try:
            token_data = response.json()
        except ValueError as e:
            logger.error(
                "Token endpoint returned non-JSON response (status %s)", response.status_code
            )
            raise TokenExchangeError(
                "invalid_response", f"HTTP {response.status_code}: {response.text[:200]}"
            ) from e

        if not isinstance(token_data, dict):
            raise TokenExchangeError("invalid_response", "Token response is not an object")

        error = token_data.get("error")
        if error:
            description = token_data.get("error_description")
            logger.error("Token exchange rejected: %s - %s", error, description or "-")
            raise TokenExchangeError(str(error), description)

        if "access_token" not in token_data:
            logger.error("Token response missing access_token (status %s)", response.status_code)
            raise TokenExchangeError(
                "invalid_response", "Token response missing 'access_token' field"
            )

        token = cls.from_token_response(
            token_data, client=client, refresh_token=params.get("refresh_token")
        )
        logger.info(
            "Obtained access token via %s (scope: %s, expires: %s)",
            grant_type,
            token.scope or "N/A",
            token.expires_at.isoformat(),
        )
        return token

    def _require_client(self) -> PKCEClient:
        if self.client is None:
            msg = "AccessToken is not attached to a PKCEClient"
            raise RuntimeError(msg)
        return self.client

    async def refresh(self) -> AccessToken:
        """Exchange the refresh token for a new AccessToken.

        The current instance is left untouched.

        Raises:
            TokenExchangeError: If there is no refresh token or the provider
                rejects it
        """
        client = self._require_client()
        if not self.refresh_token:
            raise TokenExchangeError("invalid_request", "No refresh token available")

        logger.debug("Refreshing access token")
        return await type(self).exchange(
            client, "refresh_token", {"refresh_token": self.refresh_token}
        )

    async def fetch(self, path: str, method: str = "GET", **request_options: Any) -> Any:
        """Call the resource API with this token.

        Args:
            path: URL resolved against the client's API base URL
            method: HTTP method
            **request_options: Passed through to httpx (params, json, headers, ...)

        Returns:
            The decoded JSON body without any ``error`` key, or None for an
            empty body

        Raises:
            APIError: If the response contains an error object or is not JSON
        """
        client = self._require_client()
        http_client = await client.get_http_client()
        url = httpx.URL(client.api_base_url).join(path)

        headers = dict(request_options.pop("headers", None) or {})
        headers["Authorization"] = self.authorization_header

        logger.debug("%s %s", method, url)

        try:
            response = await http_client.request(method, url, headers=headers, **request_options)
        except httpx.HTTPError as e:
            logger.error("API request %s %s failed: %s", method, url, e)
            raise APIError(f"Request failed: {e}") from e

        if not response.content:
            return None

        try:
            body = response.json()
        except ValueError as e:
            raise APIError(
                "Response is not valid JSON",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        if not isinstance(body, dict):
            return body

        error = body.pop("error", None)
        if error:
            message = error.get("message") if isinstance(error, dict) else None
            message = message or str(error)
            logger.warning("API error from %s %s: %s", method, url, message)
            raise APIError(
                message,
                status_code=response.status_code,
                response_body={"error": error, **body},
            )

        return body
