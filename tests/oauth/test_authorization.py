"""Tests for authorization request construction."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from loopback_pkce.oauth.authorization import (
    build_authorization_url,
    create_authorization_request,
)
from loopback_pkce.oauth.pkce import generate_code_challenge

AUTHORIZE_URL = "https://auth.example.com/authorize"
CALLBACK_URL = "http://localhost:49918/callback"


class TestBuildAuthorizationURL:
    """Tests for build_authorization_url function."""

    def test_parameters_in_stable_order(self) -> None:
        """Test that query parameters are emitted in a fixed order."""
        url = build_authorization_url(
            AUTHORIZE_URL, "abc123", CALLBACK_URL, "challenge", "state-value"
        )

        assert url == (
            "https://auth.example.com/authorize?client_id=abc123&response_type=code"
            "&redirect_uri=http%3A%2F%2Flocalhost%3A49918%2Fcallback"
            "&code_challenge_method=S256&code_challenge=challenge&state=state-value"
        )

    def test_scope_is_space_joined(self) -> None:
        """Test that scopes are appended as a single space-joined parameter."""
        url = build_authorization_url(
            AUTHORIZE_URL,
            "abc123",
            CALLBACK_URL,
            "challenge",
            "state",
            ["user-read-email", "user-read-private"],
        )

        assert url.endswith("&state=state&scope=user-read-email+user-read-private")
        query = parse_qs(urlsplit(url).query)
        assert query["scope"] == ["user-read-email user-read-private"]

    def test_no_scope_without_scopes(self) -> None:
        """Test that empty scope lists omit the scope parameter."""
        for scopes in (None, []):
            url = build_authorization_url(
                AUTHORIZE_URL, "abc123", CALLBACK_URL, "challenge", "state", scopes
            )
            assert "scope=" not in url

    def test_endpoint_with_existing_query(self) -> None:
        """Test that an endpoint query string is extended, not replaced."""
        url = build_authorization_url(
            f"{AUTHORIZE_URL}?prompt=consent", "abc123", CALLBACK_URL, "c", "s"
        )
        assert url.startswith(f"{AUTHORIZE_URL}?prompt=consent&client_id=abc123")


class TestCreateAuthorizationRequest:
    """Tests for create_authorization_request function."""

    def test_binds_state_and_challenge(self) -> None:
        """Test that the URL carries the request's state and challenge."""
        request = create_authorization_request(AUTHORIZE_URL, "abc123", CALLBACK_URL)
        query = parse_qs(urlsplit(request.url).query)

        assert "response_type=code&redirect_uri" in request.url
        assert "code_challenge_method=S256" in request.url
        assert query["state"] == [request.state]
        assert query["code_challenge"] == [generate_code_challenge(request.pkce.code_verifier)]

    def test_state_has_enough_entropy(self) -> None:
        """Test that state encodes at least 32 random bytes."""
        request = create_authorization_request(AUTHORIZE_URL, "abc123", CALLBACK_URL)
        assert len(request.state) >= 43

    def test_fresh_values_per_request(self) -> None:
        """Test that every request gets its own state and verifier."""
        first = create_authorization_request(AUTHORIZE_URL, "abc123", CALLBACK_URL)
        second = create_authorization_request(AUTHORIZE_URL, "abc123", CALLBACK_URL)

        assert first.state != second.state
        assert first.pkce.code_verifier != second.pkce.code_verifier
