"""Exceptions raised by the PKCE client."""

from __future__ import annotations


class PKCEError(Exception):
    """Base exception for all loopback PKCE errors.

    Attributes:
        message: Human-readable error message
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PKCEError):
    """Raised for malformed configuration or an unusable callback listener.

    Covers invalid callback URLs, a callback port that is already bound,
    and a second authorization attempt while one is still running.
    """


class AuthorizationError(PKCEError):
    """Raised when the browser handshake does not yield an authorization code.

    Attributes:
        error: Last error code reported by the provider (if any)
    """

    def __init__(self, message: str, error: str | None = None) -> None:
        super().__init__(message)
        self.error = error


class TokenExchangeError(PKCEError):
    """Raised when the token endpoint rejects a code or refresh token.

    Attributes:
        error: OAuth error code (e.g. ``invalid_grant``)
        error_description: Provider supplied description (if any)
    """

    def __init__(self, error: str, error_description: str | None = None) -> None:
        message = f"{error}: {error_description}" if error_description else error
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class APIError(PKCEError):
    """Raised when an authorized resource API call returns an error object.

    Attributes:
        message: Error message from the response
        status_code: HTTP status code (if applicable)
        response_body: Raw response body (if available)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict | str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message
