"""Webhook intake for Graph change notifications.

Graph validates a notification URL by POSTing a ``validationToken`` query
parameter and expecting it echoed back as ``text/plain`` within 10 seconds.
Regular notifications are matched to their owner through ``clientState``.
Forwarding notification payloads downstream is handled elsewhere.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from prometheus_sync.models.schemas import ResourceClass
from prometheus_sync.services.client_state import InvalidClientStateError, parse_client_state
from prometheus_sync.services.subscription_policy import POLICIES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])

_SOURCES: dict[str, ResourceClass] = {
    policy.notification_path.rsplit("/", 1)[-1]: resource_class
    for resource_class, policy in POLICIES.items()
}


class NotificationAck(BaseModel):
    """Acknowledgement returned to Graph."""
    accepted: int = Field(..., description="Notifications matched to an owner")
    rejected: int = Field(..., description="Notifications with an unknown clientState")


@router.post(
    "/{source}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=NotificationAck,
    summary="Receive Graph notifications",
    responses={200: {"description": "Validation token echoed"}, 404: {"description": "Unknown source"}},
)
async def receive_notifications(
    source: str,
    request: Request,
    validation_token: Optional[str] = Query(None, alias="validationToken"),
) -> Any:
    resource_class = _SOURCES.get(source)
    if resource_class is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown webhook source")

    if validation_token is not None:
        logger.info(f"Answering validation request for /webhook/{source} (len={len(validation_token)})")
        return PlainTextResponse(validation_token, status_code=status.HTTP_200_OK)

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be JSON")

    notifications = payload.get("value", []) if isinstance(payload, dict) else []
    accepted = rejected = 0
    for notification in notifications:
        if not isinstance(notification, dict):
            rejected += 1
            continue
        try:
            correlation = parse_client_state(notification.get("clientState"))
        except InvalidClientStateError as e:
            rejected += 1
            logger.warning(
                f"Rejected notification for subscription {notification.get('subscriptionId')}: {e}"
            )
            continue

        if correlation.resource_class != resource_class:
            rejected += 1
            logger.warning(
                f"Notification tagged {correlation.resource_class.value} arrived on /webhook/{source}"
            )
            continue

        accepted += 1
        logger.info(
            f"{notification.get('changeType')} notification for user {correlation.user_id}"
            + (f" team {correlation.team_id}" if correlation.team_id else "")
            + f" on {notification.get('resource')}"
        )

    return NotificationAck(accepted=accepted, rejected=rejected)
