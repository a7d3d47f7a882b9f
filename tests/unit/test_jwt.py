"""Unit tests for the token scope helpers."""

import jwt

from prometheus_sync.utils.jwt import decode_unverified_claims, token_scopes


def make_token(claims: dict) -> str:
    return jwt.encode(claims, "test-signing-key-not-used-for-verification", algorithm="HS256")


def test_delegated_scopes() -> None:
    token = make_token({"scp": "User.Read Chat.Read Mail.Read"})

    assert token_scopes(token) == ["User.Read", "Chat.Read", "Mail.Read"]


def test_application_roles() -> None:
    token = make_token({"roles": ["Chat.Read.All", "Mail.Read"]})

    assert token_scopes(token) == ["Chat.Read.All", "Mail.Read"]


def test_token_without_scopes() -> None:
    assert token_scopes(make_token({"sub": "user-1"})) == []


def test_opaque_token_is_not_decoded() -> None:
    assert decode_unverified_claims("EwB4A8l6BAAU") is None
    assert token_scopes("EwB4A8l6BAAU") is None
