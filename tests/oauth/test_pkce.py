"""Tests for PKCE implementation."""

from __future__ import annotations

import base64
import hashlib
import re

import pytest

from loopback_pkce.oauth.pkce import (
    PKCEPair,
    create_pkce_pair,
    generate_code_challenge,
    generate_code_verifier,
)

UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")
BASE64URL_NO_PADDING = re.compile(r"^[A-Za-z0-9\-_]+$")


class TestGenerateCodeVerifier:
    """Tests for generate_code_verifier function."""

    def test_default_length(self) -> None:
        """Test that 32 bytes give the minimum verifier length."""
        assert len(generate_code_verifier()) == 43

    def test_maximum_length(self) -> None:
        """Test that the largest allowed input stays within 128 characters."""
        assert len(generate_code_verifier(96)) == 128

    def test_unique_values(self) -> None:
        """Test that verifiers are unique."""
        verifiers = {generate_code_verifier() for _ in range(100)}
        assert len(verifiers) == 100

    def test_unreserved_characters(self) -> None:
        """Test that verifier only uses the unreserved character set."""
        for _ in range(20):
            assert UNRESERVED.match(generate_code_verifier())

    def test_rejects_low_entropy(self) -> None:
        """Test that low entropy values are rejected."""
        with pytest.raises(ValueError, match="at least 32"):
            generate_code_verifier(nbytes=16)

    def test_rejects_oversized(self) -> None:
        """Test that verifiers longer than 128 characters are rejected."""
        with pytest.raises(ValueError, match="at most 96"):
            generate_code_verifier(nbytes=97)


class TestGenerateCodeChallenge:
    """Tests for generate_code_challenge function."""

    def test_deterministic(self) -> None:
        """Test that same verifier produces same challenge."""
        for nbytes in (32, 64, 96):
            verifier = generate_code_verifier(nbytes)
            assert generate_code_challenge(verifier) == generate_code_challenge(verifier)

    def test_base64url_without_padding(self) -> None:
        """Test that challenges are base64url with no '=' padding."""
        for nbytes in (32, 48, 64, 96):
            challenge = generate_code_challenge(generate_code_verifier(nbytes))
            assert BASE64URL_NO_PADDING.match(challenge)
            assert "=" not in challenge
            # SHA-256 digest is 32 bytes -> 43 characters unpadded
            assert len(challenge) == 43

    def test_rfc7636_appendix_b(self) -> None:
        """Test the example verifier/challenge from RFC 7636."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_s256_algorithm(self) -> None:
        """Test that S256 algorithm is correctly implemented."""
        verifier = "test_verifier_string"
        expected_hash = hashlib.sha256(verifier.encode("ascii")).digest()
        expected = base64.urlsafe_b64encode(expected_hash).rstrip(b"=").decode("ascii")
        assert generate_code_challenge(verifier) == expected


class TestPKCEPair:
    """Tests for PKCEPair dataclass."""

    def test_is_frozen(self) -> None:
        """Test that PKCEPair is immutable."""
        pair = PKCEPair(code_verifier="verifier", code_challenge="challenge")

        with pytest.raises(AttributeError):
            pair.code_verifier = "new"  # type: ignore[misc]

    def test_create_pkce_pair(self) -> None:
        """Test that the challenge matches the generated verifier."""
        pair = create_pkce_pair()
        assert pair.code_challenge == generate_code_challenge(pair.code_verifier)
