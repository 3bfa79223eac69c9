"""PKCE (Proof Key for Code Exchange) implementation.

Implements the S256 method of RFC 7636 for the Authorization Code flow.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

# 32 bytes encode to 43 characters and 96 bytes to 128, the RFC 7636 bounds
MIN_VERIFIER_BYTES = 32
MAX_VERIFIER_BYTES = 96


@dataclass(frozen=True)
class PKCEPair:
    """PKCE code verifier and challenge pair.

    Attributes:
        code_verifier: Random string sent with the token request
        code_challenge: SHA256 hash of the verifier sent with the auth request
    """

    code_verifier: str
    code_challenge: str


def generate_code_verifier(nbytes: int = MIN_VERIFIER_BYTES) -> str:
    """Generate a cryptographically random code verifier.

    The result is 43-128 characters drawn from the URL-safe
    unreserved character set.

    Args:
        nbytes: Number of random bytes (32 to 96)

    Returns:
        URL-safe code verifier string

    Raises:
        ValueError: If nbytes is outside the allowed range
    """
    if nbytes < MIN_VERIFIER_BYTES:
        msg = f"nbytes must be at least {MIN_VERIFIER_BYTES} for sufficient entropy"
        raise ValueError(msg)
    if nbytes > MAX_VERIFIER_BYTES:
        msg = f"nbytes must be at most {MAX_VERIFIER_BYTES} to stay within 128 characters"
        raise ValueError(msg)

    return secrets.token_urlsafe(nbytes)


def generate_code_challenge(verifier: str) -> str:
    """Compute the S256 code challenge: BASE64URL(SHA256(code_verifier)).

    Args:
        verifier: The code verifier string

    Returns:
        Base64url-encoded SHA256 hash (without padding)
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_pkce_pair(nbytes: int = MIN_VERIFIER_BYTES) -> PKCEPair:
    """Create a new PKCE code verifier/challenge pair."""
    verifier = generate_code_verifier(nbytes)
    return PKCEPair(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))
