"""Access token acquisition for Graph calls.

Two kinds of bearer credential are used:

- delegated tokens act on behalf of a signed-in user and are only needed to
  read that user's profile and joined teams;
- application tokens act as the service itself and are used to create and
  renew subscriptions, so renewal never needs the user's consent again.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from prometheus_sync.core.config import ConfigurationError, settings

logger = logging.getLogger(__name__)


GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"

# Refresh cached application tokens this long before they expire
TOKEN_REFRESH_MARGIN_SECONDS = 300


class AuthFailure(Exception):
    """Raised when a credential cannot be obtained."""
    pass


@dataclass
class UserSession:
    """Delegated credential carried by a signed-in user's request."""
    access_token: str
    expires_at: Optional[datetime] = None


class TokenProvider(ABC):
    """Source of delegated and application credentials."""

    def get_delegated_token(self, user_session: UserSession) -> str:
        """Return the user's delegated token, rejecting empty or expired sessions."""
        if not user_session.access_token:
            raise AuthFailure("User session carries no access token")
        if user_session.expires_at is not None:
            expires_at = user_session.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                raise AuthFailure("User session token has expired")
        return user_session.access_token

    @abstractmethod
    async def get_application_token(self) -> str:
        """Return an application-only token."""
        pass


class ClientCredentialsTokenProvider(TokenProvider):
    """Azure AD client-credentials flow with an in-process token cache."""

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        authority: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._tenant_id = tenant_id if tenant_id is not None else settings.azure_tenant_id
        self._client_id = client_id if client_id is not None else settings.azure_client_id
        self._client_secret = client_secret if client_secret is not None else settings.azure_client_secret
        self._authority = (authority if authority is not None else settings.azure_authority).rstrip("/")
        self._timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.graph_timeout_seconds
        )
        self._transport = transport
        self._cached_token: Optional[str] = None
        self._cached_until: float = 0.0

        if not (self._tenant_id and self._client_id and self._client_secret):
            raise ConfigurationError(
                "AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET must be set"
            )

    @property
    def token_url(self) -> str:
        return f"{self._authority}/{self._tenant_id}/oauth2/v2.0/token"

    async def get_application_token(self) -> str:
        if self._cached_token and time.monotonic() < self._cached_until:
            return self._cached_token

        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": GRAPH_DEFAULT_SCOPE,
            "grant_type": "client_credentials",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(self.token_url, data=data)
        except httpx.HTTPError as e:
            raise AuthFailure(f"Token endpoint unreachable: {e}") from e

        if response.is_error:
            logger.error(f"Application token request failed: {response.status_code} {response.text[:200]}")
            raise AuthFailure(f"Token endpoint returned {response.status_code}")

        try:
            payload = response.json()
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3599))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthFailure("Token endpoint returned an unexpected body") from e
        if not isinstance(token, str) or not token:
            raise AuthFailure("Token endpoint returned an empty access token")

        self._cached_token = token
        self._cached_until = time.monotonic() + max(expires_in - TOKEN_REFRESH_MARGIN_SECONDS, 0)
        logger.info(f"Acquired application token (expires in {expires_in}s)")
        return token
