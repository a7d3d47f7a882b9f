"""Microsoft Graph client for change-notification subscriptions.

Wraps the subscription create/renew/delete calls plus the two user-scoped
reads needed to provision a user (profile and joined teams).

Every failure is classified so callers can react per class:

- ``NotFoundError``: 404, the remote subscription no longer exists;
- ``TransientError``: 429, 5xx, timeouts and connection failures, safe to retry
  on a later pass;
- ``RejectedError``: any other 4xx (permission, validation).
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from prometheus_sync.core.config import settings
from prometheus_sync.models.schemas import (
    ErrorKind,
    Principal,
    RemoteSubscription,
    SubscriptionRequest,
    Team,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Exceptions
# ============================================================================

class GraphError(Exception):
    """Base exception for Graph API failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class NotFoundError(GraphError):
    """Raised when the remote resource does not exist (404)."""
    pass


class TransientError(GraphError):
    """Raised for rate limits, server errors and network failures."""
    pass


class RejectedError(GraphError):
    """Raised for client errors other than 404."""

    @property
    def is_authorization_error(self) -> bool:
        return self.status_code in (401, 403)


def classify_status(status_code: int) -> type[GraphError]:
    """Map an HTTP error status to its failure class."""
    if status_code == 404:
        return NotFoundError
    if status_code == 429 or status_code >= 500:
        return TransientError
    return RejectedError


def error_kind_for(error: GraphError) -> ErrorKind:
    """Report label for a classified failure."""
    if isinstance(error, NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, RejectedError):
        return ErrorKind.REJECTED
    return ErrorKind.TRANSIENT


# ============================================================================
# Timestamp helpers
# ============================================================================

_GRAPH_DATETIME = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)


def parse_graph_datetime(value: str) -> datetime:
    """Parse a Graph timestamp such as ``2026-01-01T10:00:00.0000000Z``."""
    match = _GRAPH_DATETIME.match(value.strip())
    if match is None:
        raise ValueError(f"Unrecognized timestamp: {value!r}")
    fraction = (match["fraction"] or "0").ljust(6, "0")[:6]
    tz = match["tz"] or "Z"
    if tz == "Z":
        tz = "+00:00"
    parsed = datetime.fromisoformat(f"{match['base']}.{fraction}{tz}")
    return parsed.astimezone(timezone.utc)


def format_graph_datetime(value: datetime) -> str:
    """Format an instant the way Graph expects (UTC, millisecond precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _remote_subscription(data: Optional[dict[str, Any]]) -> RemoteSubscription:
    try:
        return RemoteSubscription(
            id=data["id"],
            resource=data.get("resource"),
            expiration_date_time=parse_graph_datetime(data["expirationDateTime"]),
            change_type=data.get("changeType"),
            client_state=data.get("clientState"),
        )
    except (TypeError, KeyError, ValueError) as e:
        raise TransientError(f"Unexpected subscription body from Graph: {e}") from e


# ============================================================================
# Client
# ============================================================================

class GraphClient:
    """Async Microsoft Graph client.

    Requests are bounded by ``timeout_seconds`` so that one unresponsive call
    cannot stall a whole renewal pass.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.graph_base_url).rstrip("/")
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.graph_timeout_seconds
        )
        self._transport = transport

    def _get_headers(self, token: str) -> dict:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[dict] = None,
    ) -> Optional[dict]:
        """Send one request and translate failures into ``GraphError`` subclasses."""
        url = f"{self.base_url}{path}"
        timeout = httpx.Timeout(self.timeout_seconds)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._get_headers(token), json=json)
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out after {self.timeout_seconds}s") from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            detail = self._error_detail(response)
            error_class = classify_status(response.status_code)
            raise error_class(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
                detail=detail,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransientError(f"{method} {path} returned a non-JSON body") from e

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            code = error.get("code", "")
            message = error.get("message", "")
            return f"{code}: {message}".strip(": ")
        return str(body)[:200]

    async def create_subscription(self, request: SubscriptionRequest, token: str) -> RemoteSubscription:
        """Create a subscription; the granted expiration may be shorter than requested."""
        payload = {
            "changeType": request.change_type,
            "notificationUrl": request.notification_url,
            "resource": request.resource,
            "expirationDateTime": format_graph_datetime(request.expiration_date_time),
            "clientState": request.client_state,
            "includeResourceData": request.include_resource_data,
        }
        data = await self._request("POST", "/subscriptions", token, json=payload)
        return _remote_subscription(data)

    async def renew_subscription(
        self,
        subscription_id: str,
        expiration: datetime,
        token: str,
    ) -> RemoteSubscription:
        """Extend a subscription's expiration."""
        data = await self._request(
            "PATCH",
            f"/subscriptions/{subscription_id}",
            token,
            json={"expirationDateTime": format_graph_datetime(expiration)},
        )
        return _remote_subscription(data)

    async def delete_subscription(self, subscription_id: str, token: str) -> None:
        await self._request("DELETE", f"/subscriptions/{subscription_id}", token)

    async def get_principal(self, token: str) -> Principal:
        """Profile of the user owning a delegated token."""
        data = await self._request("GET", "/me", token)
        try:
            return Principal(
                id=data["id"],
                user_principal_name=data["userPrincipalName"],
                display_name=data.get("displayName"),
            )
        except (TypeError, KeyError) as e:
            raise TransientError(f"Unexpected profile body from Graph: {e}") from e

    async def list_joined_teams(self, token: str) -> list[Team]:
        """Teams joined by the user owning a delegated token."""
        data = await self._request("GET", "/me/joinedTeams", token)
        return [
            Team(id=team["id"], display_name=team.get("displayName"))
            for team in (data or {}).get("value", [])
        ]
