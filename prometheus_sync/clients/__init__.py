"""External API clients package."""

from prometheus_sync.clients.graph_client import (
    GraphClient,
    GraphError,
    NotFoundError,
    RejectedError,
    TransientError,
)
from prometheus_sync.clients.token_provider import (
    AuthFailure,
    ClientCredentialsTokenProvider,
    TokenProvider,
    UserSession,
)

__all__ = [
    "GraphClient",
    "GraphError",
    "NotFoundError",
    "RejectedError",
    "TransientError",
    "AuthFailure",
    "ClientCredentialsTokenProvider",
    "TokenProvider",
    "UserSession",
]
