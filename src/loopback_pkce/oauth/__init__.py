"""OAuth 2.0 Authorization Code flow with PKCE.

Provides verifier/challenge generation, authorization URL construction,
the loopback callback listener, and token exchange and refresh.
"""

from loopback_pkce.oauth.authorization import (
    AuthorizationRequest,
    build_authorization_url,
    create_authorization_request,
)
from loopback_pkce.oauth.callback import CallbackServer, CallbackTarget, parse_callback_url
from loopback_pkce.oauth.client import PKCEClient
from loopback_pkce.oauth.pkce import (
    PKCEPair,
    create_pkce_pair,
    generate_code_challenge,
    generate_code_verifier,
)
from loopback_pkce.oauth.token import AccessToken

__all__ = [
    "AccessToken",
    "AuthorizationRequest",
    "CallbackServer",
    "CallbackTarget",
    "PKCEClient",
    "PKCEPair",
    "build_authorization_url",
    "create_authorization_request",
    "create_pkce_pair",
    "generate_code_challenge",
    "generate_code_verifier",
    "parse_callback_url",
]
