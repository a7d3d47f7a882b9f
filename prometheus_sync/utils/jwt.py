"""JWT helpers for diagnostic logging of delegated tokens.

Delegated tokens are opaque to the service: they are passed straight to Graph
and never trusted based on their contents. The helpers below only read the
unverified claims so that granted scopes can be logged when troubleshooting
consent problems. Failure to decode never affects control flow.
"""

import logging
from typing import Optional

import jwt
from jwt.exceptions import PyJWTError

logger = logging.getLogger(__name__)


def decode_unverified_claims(token: str) -> Optional[dict]:
    """Read a token's claims without verifying it.

    Returns:
        The claims dict, or None if the token is not a decodable JWT
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except PyJWTError:
        return None


def token_scopes(token: str) -> Optional[list[str]]:
    """Delegated scopes (``scp``) or application roles (``roles``) of a token."""
    claims = decode_unverified_claims(token)
    if claims is None:
        return None
    scopes = claims.get("scp")
    if isinstance(scopes, str):
        return scopes.split()
    roles = claims.get("roles")
    if isinstance(roles, list):
        return [str(role) for role in roles]
    return []


def log_token_scopes(token: str) -> None:
    """Log the scopes of a delegated token at debug level."""
    scopes = token_scopes(token)
    if scopes is None:
        logger.debug("Could not decode token scopes")
    else:
        logger.debug(f"User token scopes: {scopes}")
