"""Utility modules package."""

from prometheus_sync.utils.jwt import decode_unverified_claims, log_token_scopes, token_scopes

__all__ = ["decode_unverified_claims", "log_token_scopes", "token_scopes"]
