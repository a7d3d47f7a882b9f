"""Renewal API for Prometheus.

On-demand trigger for the renewal pass, meant for external cron callers.
It runs the same routine as the background scheduler.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from prometheus_sync.api.deps import (
    ErrorCode,
    api_error,
    get_renewal_service,
    verify_cron_secret,
)
from prometheus_sync.clients.token_provider import AuthFailure
from prometheus_sync.core.config import settings
from prometheus_sync.models.schemas import RenewalReport
from prometheus_sync.services.registry import RegistryError
from prometheus_sync.services.renewal_service import RenewalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["renewal"])


@router.get(
    "/renew",
    response_model=RenewalReport,
    summary="Run a renewal pass",
    description="Renew every subscription expiring within the lookahead window",
    dependencies=[Depends(verify_cron_secret)],
    responses={
        401: {"description": "Missing or wrong cron secret"},
        502: {"description": "Application credential unavailable"},
        503: {"description": "Subscription registry unavailable"},
    },
)
async def run_renewal(
    renewal_service: Annotated[RenewalService, Depends(get_renewal_service)],
) -> RenewalReport:
    try:
        return await renewal_service.run_renewal_pass(timeout=settings.renewal_request_timeout_seconds)
    except AuthFailure as e:
        logger.error(f"Renewal pass aborted, no application credential: {e}")
        raise api_error(status.HTTP_502_BAD_GATEWAY, ErrorCode.AUTH_FAILURE, str(e))
    except RegistryError as e:
        logger.error(f"Renewal pass aborted, registry unavailable: {e}")
        raise api_error(status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.REGISTRY_UNAVAILABLE, str(e))
