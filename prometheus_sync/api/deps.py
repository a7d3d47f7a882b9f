"""API Dependencies for Prometheus.

This module provides common dependencies for API endpoints: access to the
process-wide services built at startup, bearer-token extraction for
delegated user credentials, and the shared-secret check guarding the
on-demand renewal trigger.
"""

import hmac
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from prometheus_sync.clients.token_provider import TokenProvider, UserSession
from prometheus_sync.core.config import settings
from prometheus_sync.services.container import Services
from prometheus_sync.services.provisioner import Provisioner
from prometheus_sync.services.registry import SubscriptionRegistry
from prometheus_sync.services.renewal_service import RenewalService


# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


# ============================================================================
# Error Codes
# ============================================================================

class ErrorCode:
    """API error codes."""
    UNAUTHORIZED = "UNAUTHORIZED"
    AUTH_FAILURE = "AUTH_FAILURE"
    PRINCIPAL_UNRESOLVED = "PRINCIPAL_UNRESOLVED"
    INVALID_USER = "INVALID_USER"
    REGISTRY_UNAVAILABLE = "REGISTRY_UNAVAILABLE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


def api_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


# ============================================================================
# Service Dependencies
# ============================================================================

def get_services(request: Request) -> Services:
    """Services built by the application lifespan."""
    services: Optional[Services] = getattr(request.app.state, "services", None)
    if services is None:
        raise api_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            ErrorCode.SERVICE_UNAVAILABLE,
            "Services are not initialized",
        )
    return services


def get_renewal_service(services: Annotated[Services, Depends(get_services)]) -> RenewalService:
    return services.renewal_service


def get_provisioner(services: Annotated[Services, Depends(get_services)]) -> Provisioner:
    return services.provisioner


def get_token_provider(services: Annotated[Services, Depends(get_services)]) -> TokenProvider:
    return services.token_provider


def get_registry(services: Annotated[Services, Depends(get_services)]) -> SubscriptionRegistry:
    return services.registry


# ============================================================================
# Authentication Dependencies
# ============================================================================

async def get_user_session(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> UserSession:
    """Delegated user credential from the Authorization header."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": ErrorCode.UNAUTHORIZED, "message": "Missing bearer token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserSession(access_token=credentials.credentials)


async def verify_cron_secret(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> None:
    """Require ``Bearer <CRON_SECRET>`` when a cron secret is configured."""
    if not settings.cron_secret:
        return
    supplied = credentials.credentials if credentials else ""
    if not hmac.compare_digest(supplied.encode(), settings.cron_secret.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": ErrorCode.UNAUTHORIZED, "message": "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )
