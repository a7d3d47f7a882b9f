"""Subscriptions API for Prometheus.

Creates a signed-in user's change-notification subscriptions. The caller
forwards the user's delegated Graph token as the bearer credential.

Operators can list a user's tracked subscriptions with the cron secret.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from prometheus_sync.api.deps import (
    ErrorCode,
    api_error,
    get_provisioner,
    get_registry,
    get_token_provider,
    get_user_session,
    verify_cron_secret,
)
from prometheus_sync.clients.graph_client import GraphError
from prometheus_sync.clients.token_provider import AuthFailure, TokenProvider, UserSession
from prometheus_sync.models.schemas import ProvisionResult, SubscriptionSummary
from prometheus_sync.services.client_state import MAX_USER_ID_LENGTH, InvalidClientStateError
from prometheus_sync.services.provisioner import Provisioner
from prometheus_sync.services.registry import RegistryError, SubscriptionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


class ProvisionRequest(BaseModel):
    """Provisioning request."""
    user_id: str = Field(
        ..., min_length=1, max_length=MAX_USER_ID_LENGTH, description="Local user identifier"
    )


@router.post(
    "/provision",
    response_model=ProvisionResult,
    summary="Create a user's subscriptions",
    description="Subscribe to the user's Teams chats, Outlook mail and joined team channels",
    responses={
        400: {"description": "user_id cannot be encoded"},
        401: {"description": "Missing or expired delegated token"},
        502: {"description": "Principal or application credential unavailable"},
    },
)
async def provision_subscriptions(
    body: ProvisionRequest,
    user_session: Annotated[UserSession, Depends(get_user_session)],
    provisioner: Annotated[Provisioner, Depends(get_provisioner)],
    token_provider: Annotated[TokenProvider, Depends(get_token_provider)],
) -> ProvisionResult:
    try:
        delegated = token_provider.get_delegated_token(user_session)
    except AuthFailure as e:
        raise api_error(status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED, str(e))

    try:
        return await provisioner.provision(body.user_id, delegated)
    except InvalidClientStateError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_USER, str(e))
    except AuthFailure as e:
        logger.error(f"Provisioning aborted, no application credential: {e}")
        raise api_error(status.HTTP_502_BAD_GATEWAY, ErrorCode.AUTH_FAILURE, str(e))
    except GraphError as e:
        logger.error(f"Provisioning aborted, principal unresolved for user {body.user_id}: {e}")
        raise api_error(status.HTTP_502_BAD_GATEWAY, ErrorCode.PRINCIPAL_UNRESOLVED, str(e))


@router.get(
    "/users/{user_id}",
    response_model=list[SubscriptionSummary],
    summary="List a user's subscriptions",
    description="Return the stored subscription records for one user, soonest expiry first",
    dependencies=[Depends(verify_cron_secret)],
    responses={
        401: {"description": "Missing or wrong cron secret"},
        503: {"description": "Subscription registry unavailable"},
    },
)
async def list_user_subscriptions(
    user_id: str,
    registry: Annotated[SubscriptionRegistry, Depends(get_registry)],
) -> list[SubscriptionSummary]:
    try:
        records = await registry.list_for_user(user_id)
    except RegistryError as e:
        logger.error(f"Listing subscriptions failed for user {user_id}: {e}")
        raise api_error(status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.REGISTRY_UNAVAILABLE, str(e))
    return [SubscriptionSummary.from_record(record) for record in records]
