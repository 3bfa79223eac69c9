"""Loopback PKCE.

OAuth 2.0 Authorization Code with PKCE for desktop and command line
applications, using a transient local listener for the redirect.
"""

__version__ = "0.1.0"

from loopback_pkce.config import Config, load_config
from loopback_pkce.exceptions import (
    APIError,
    AuthorizationError,
    ConfigurationError,
    PKCEError,
    TokenExchangeError,
)
from loopback_pkce.oauth import AccessToken, PKCEClient

__all__ = [
    "APIError",
    "AccessToken",
    "AuthorizationError",
    "Config",
    "ConfigurationError",
    "PKCEClient",
    "PKCEError",
    "TokenExchangeError",
    "__version__",
    "load_config",
]
