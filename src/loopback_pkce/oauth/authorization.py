"""Authorization request construction.

Builds the provider URL the user visits to grant consent.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import urlencode

from loopback_pkce.logging_config import get_logger
from loopback_pkce.oauth.pkce import PKCEPair, create_pkce_pair
from loopback_pkce.security import generate_secure_token

logger = get_logger(__name__)

STATE_NBYTES = 32


@dataclass(frozen=True)
class AuthorizationRequest:
    """A single authorization attempt.

    Attributes:
        state: Anti-CSRF value the provider must echo back unmodified
        url: Fully formed authorization URL
        pkce: Verifier/challenge pair bound to this attempt
    """

    state: str
    url: str
    pkce: PKCEPair


def build_authorization_url(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    state: str,
    scopes: Sequence[str] | None = None,
) -> str:
    """Build the provider authorization URL.

    Query parameters are emitted in a fixed order so the result is stable.
    The scope parameter is only present when scopes are given.

    Args:
        authorization_endpoint: Provider authorization endpoint
        client_id: OAuth client identifier
        redirect_uri: Registered redirect URI
        code_challenge: S256 PKCE challenge
        state: Random state parameter for CSRF protection
        scopes: Optional scopes to request

    Returns:
        Authorization URL
    """
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "code_challenge_method": "S256",
        "code_challenge": code_challenge,
        "state": state,
    }
    if scopes:
        params["scope"] = " ".join(scopes)

    separator = "&" if "?" in authorization_endpoint else "?"
    return f"{authorization_endpoint}{separator}{urlencode(params)}"


def create_authorization_request(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    scopes: Sequence[str] | None = None,
) -> AuthorizationRequest:
    """Generate a fresh PKCE pair and state and build the authorization URL."""
    pkce = create_pkce_pair()
    state = generate_secure_token(STATE_NBYTES)
    url = build_authorization_url(
        authorization_endpoint,
        client_id,
        redirect_uri,
        pkce.code_challenge,
        state,
        scopes,
    )
    logger.debug("Created authorization request with state %s", state[:8])
    return AuthorizationRequest(state=state, url=url, pkce=pkce)
