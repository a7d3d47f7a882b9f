"""Renewal of subscriptions nearing expiration.

``RenewalService.run_renewal_pass`` is the single renewal routine. Both the
background scheduler and the on-demand HTTP trigger call it.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from prometheus_sync.clients.graph_client import (
    GraphClient,
    GraphError,
    NotFoundError,
    error_kind_for,
)
from prometheus_sync.clients.token_provider import TokenProvider
from prometheus_sync.core.config import settings
from prometheus_sync.models.schemas import (
    ErrorKind,
    RenewalItem,
    RenewalReport,
    RenewalStatus,
    SubscriptionRecord,
)
from prometheus_sync.services.registry import RegistryError, SubscriptionRegistry
from prometheus_sync.services.subscription_policy import expiration_for, utcnow

logger = logging.getLogger(__name__)


class RenewalService:
    """Renews subscriptions that expire within the lookahead window."""

    def __init__(
        self,
        graph_client: GraphClient,
        registry: SubscriptionRegistry,
        token_provider: TokenProvider,
        lookahead_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.graph_client = graph_client
        self.registry = registry
        self.token_provider = token_provider
        if lookahead_minutes is None:
            lookahead_minutes = settings.renewal_lookahead_minutes
        self.lookahead = timedelta(minutes=lookahead_minutes)
        self._clock = clock

    async def run_renewal_pass(self, timeout: Optional[float] = None) -> RenewalReport:
        """Renew every subscription expiring before now + lookahead.

        Candidates are processed one at a time. A candidate's failure is
        recorded in the report and never stops the others.

        Args:
            timeout: Optional budget in seconds. Once spent, remaining
                candidates are skipped and the report is marked incomplete.

        Returns:
            Report with one result per processed candidate

        Raises:
            RegistryError: If the candidate query fails
            AuthFailure: If the application credential cannot be obtained
        """
        logger.info("Checking subscriptions for renewal...")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        now = self._clock()
        lookahead = now + self.lookahead
        candidates = await self.registry.find_expiring_before(lookahead)

        report = RenewalReport(checked_at=now, lookahead=lookahead, total_candidates=len(candidates))
        if not candidates:
            report.message = "No subscriptions to renew"
            logger.info(report.message)
            return report

        logger.info(f"Found {len(candidates)} subscription(s) to renew")
        app_token = await self.token_provider.get_application_token()

        for subscription in candidates:
            if deadline is not None and loop.time() >= deadline:
                report.completed = False
                logger.warning(
                    f"Renewal pass timed out after {report.processed} of "
                    f"{len(candidates)} subscription(s)"
                )
                break
            report.results.append(await self._renew(subscription, app_token))

        report.message = (
            f"Renewed {report.count(RenewalStatus.RENEWED)}, "
            f"deleted {report.count(RenewalStatus.DELETED)}, "
            f"failed {report.count(RenewalStatus.FAILED)}"
        )
        logger.info(f"Renewal pass finished: {report.message}")
        return report

    async def _renew(self, subscription: SubscriptionRecord, app_token: str) -> RenewalItem:
        """Renew one subscription and reconcile the registry with the outcome."""
        subscription_id = subscription.subscription_id
        requested = expiration_for(subscription.resource, self._clock())
        logger.info(f"Renewing {subscription_id} ({subscription.resource}) until {requested.isoformat()}")

        try:
            remote = await self.graph_client.renew_subscription(subscription_id, requested, app_token)
        except NotFoundError:
            return await self._forget(subscription)
        except GraphError as e:
            logger.error(f"Failed to renew {subscription_id}: {e}")
            return RenewalItem(
                subscription_id=subscription_id,
                resource=subscription.resource,
                status=RenewalStatus.FAILED,
                expiration_date_time=subscription.expiration_date_time,
                error_kind=error_kind_for(e),
                error=str(e),
            )

        renewed = subscription.model_copy(update={"expiration_date_time": remote.expiration_date_time})
        try:
            await self.registry.upsert(renewed)
        except RegistryError as e:
            logger.error(f"Renewed {subscription_id} remotely but could not store the new expiration: {e}")
            return RenewalItem(
                subscription_id=subscription_id,
                resource=subscription.resource,
                status=RenewalStatus.FAILED,
                expiration_date_time=remote.expiration_date_time,
                error_kind=ErrorKind.REGISTRY,
                error=str(e),
            )

        logger.info(f"Renewed subscription {subscription_id} until {remote.expiration_date_time.isoformat()}")
        return RenewalItem(
            subscription_id=subscription_id,
            resource=subscription.resource,
            status=RenewalStatus.RENEWED,
            expiration_date_time=remote.expiration_date_time,
        )

    async def _forget(self, subscription: SubscriptionRecord) -> RenewalItem:
        """Drop a subscription Graph no longer knows about."""
        subscription_id = subscription.subscription_id
        try:
            await self.registry.delete_by_id(subscription_id)
        except RegistryError as e:
            logger.error(f"Subscription {subscription_id} is gone remotely but could not be deleted: {e}")
            return RenewalItem(
                subscription_id=subscription_id,
                resource=subscription.resource,
                status=RenewalStatus.FAILED,
                error_kind=ErrorKind.REGISTRY,
                error=str(e),
            )

        logger.info(f"Deleted invalid local subscription: {subscription_id}")
        return RenewalItem(
            subscription_id=subscription_id,
            resource=subscription.resource,
            status=RenewalStatus.DELETED,
            error_kind=ErrorKind.NOT_FOUND,
        )
