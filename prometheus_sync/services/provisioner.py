"""Provisioner: creates a user's change-notification subscriptions.

For one signed-in user the provisioner creates:

1. a Teams chat messages subscription (55 minute validity);
2. an Outlook mail subscription (4230 minute validity);
3. one Teams channel messages subscription per joined team (55 minutes).

Each attempt is isolated. A failed attempt becomes a ``failed`` item in the
result and the remaining attempts still run. Only failing to obtain the
application credential or to resolve the user's principal aborts the call.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from prometheus_sync.clients.graph_client import (
    GraphClient,
    GraphError,
    RejectedError,
    error_kind_for,
)
from prometheus_sync.clients.token_provider import TokenProvider
from prometheus_sync.core.config import ConfigurationError, settings
from prometheus_sync.models.schemas import (
    ErrorKind,
    ProvisionItem,
    ProvisionResult,
    ProvisionStatus,
    ResourceClass,
    SubscriptionRecord,
    SubscriptionRequest,
    Team,
)
from prometheus_sync.services.client_state import (
    InvalidClientStateError,
    NonceFactory,
    build_client_state,
    default_nonce,
    validate_user_id,
)
from prometheus_sync.services.registry import RegistryError, SubscriptionRegistry
from prometheus_sync.services.subscription_policy import (
    POLICIES,
    build_resource,
    notification_url_for,
    utcnow,
)
from prometheus_sync.utils.jwt import log_token_scopes

logger = logging.getLogger(__name__)


class Provisioner:
    """Creates and records the subscriptions for one user."""

    def __init__(
        self,
        graph_client: GraphClient,
        registry: SubscriptionRegistry,
        token_provider: TokenProvider,
        webhook_base_url: Optional[str] = None,
        team_concurrency: Optional[int] = None,
        nonce_factory: NonceFactory = default_nonce,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.graph_client = graph_client
        self.registry = registry
        self.token_provider = token_provider
        if webhook_base_url is None:
            webhook_base_url = settings.webhook_public_url
        if team_concurrency is None:
            team_concurrency = settings.team_subscription_concurrency
        self.webhook_base_url = webhook_base_url.rstrip("/")
        self.team_concurrency = max(team_concurrency, 1)
        self._nonce_factory = nonce_factory
        self._clock = clock

        if not self.webhook_base_url:
            raise ConfigurationError("WEBHOOK_PUBLIC_URL environment variable is not set")

    async def provision(self, user_id: str, delegated_credential: str) -> ProvisionResult:
        """Create all eligible subscriptions for ``user_id``.

        Args:
            user_id: Local identifier of the user; embedded in every clientState
            delegated_credential: The user's delegated Graph access token

        Returns:
            One item per attempted resource class or team

        Raises:
            AuthFailure: If the application credential cannot be obtained
            GraphError: If the user's principal cannot be resolved
            InvalidClientStateError: If ``user_id`` cannot be encoded in a clientState
        """
        validate_user_id(user_id)

        log_token_scopes(delegated_credential)

        principal = await self.graph_client.get_principal(delegated_credential)
        principal_name = principal.user_principal_name
        logger.info(f"Creating subscriptions for user {user_id} ({principal_name})")

        app_token = await self.token_provider.get_application_token()

        items = [
            await self._create(ResourceClass.TEAMS_CHAT, user_id, app_token, principal=principal_name),
            await self._create(ResourceClass.OUTLOOK_MAIL, user_id, app_token, principal=principal_name),
        ]
        items.extend(await self._create_team_channels(user_id, delegated_credential, app_token))

        result = ProvisionResult(user_id=user_id, principal_name=principal_name, items=items)
        logger.info(
            f"Provisioning for user {user_id} finished: "
            f"{result.created_count} created, {result.failed_count} failed"
        )
        return result

    async def _create_team_channels(
        self,
        user_id: str,
        delegated_credential: str,
        app_token: str,
    ) -> list[ProvisionItem]:
        """One channel subscription per joined team, with bounded concurrency."""
        try:
            teams = await self.graph_client.list_joined_teams(delegated_credential)
        except RejectedError as e:
            if not e.is_authorization_error:
                logger.error(f"Failed to list joined teams for user {user_id}: {e}")
                return [self._failed(ResourceClass.TEAMS_CHANNEL, e)]
            # Guests (or tenants without admin consent) cannot enumerate teams
            logger.warning(
                f"User {user_id} cannot list joined teams (likely guest or missing consent); "
                f"skipping channel subscriptions"
            )
            return [
                ProvisionItem(
                    resource_class=ResourceClass.TEAMS_CHANNEL,
                    status=ProvisionStatus.SKIPPED,
                    error_kind=ErrorKind.REJECTED,
                    reason=str(e),
                )
            ]
        except GraphError as e:
            logger.error(f"Failed to list joined teams for user {user_id}: {e}")
            return [self._failed(ResourceClass.TEAMS_CHANNEL, e)]

        logger.info(f"Found {len(teams)} team(s) for user {user_id}")
        semaphore = asyncio.Semaphore(self.team_concurrency)

        async def create_for_team(team: Team) -> ProvisionItem:
            async with semaphore:
                return await self._create(ResourceClass.TEAMS_CHANNEL, user_id, app_token, team=team)

        return list(await asyncio.gather(*(create_for_team(team) for team in teams)))

    async def _create(
        self,
        resource_class: ResourceClass,
        user_id: str,
        app_token: str,
        principal: Optional[str] = None,
        team: Optional[Team] = None,
    ) -> ProvisionItem:
        """Create one remote subscription and store it; never raises for expected failures."""
        team_id = team.id if team else None
        team_name = team.display_name if team else None
        label = resource_class.value if team is None else f"{resource_class.value} ({team_name or team_id})"

        try:
            client_state = build_client_state(resource_class, user_id, team_id, self._nonce_factory)
        except InvalidClientStateError as e:
            logger.error(f"Cannot build clientState for {label}: {e}")
            return ProvisionItem(
                resource_class=resource_class,
                status=ProvisionStatus.FAILED,
                team_id=team_id,
                team_name=team_name,
                error_kind=ErrorKind.REJECTED,
                reason=str(e),
            )

        resource = build_resource(resource_class, principal=principal, team_id=team_id)
        validity = POLICIES[resource_class].validity_minutes
        request = SubscriptionRequest(
            resource=resource,
            notification_url=notification_url_for(resource_class, self.webhook_base_url),
            expiration_date_time=self._clock() + timedelta(minutes=validity),
            client_state=client_state,
        )

        try:
            remote = await self.graph_client.create_subscription(request, app_token)
        except GraphError as e:
            logger.error(f"Subscription for {label} failed: {e}")
            return self._failed(resource_class, e, team)

        record = SubscriptionRecord(
            subscription_id=remote.id,
            user_id=user_id,
            team_id=team_id,
            team_name=team_name,
            resource=resource,
            change_type=request.change_type,
            client_state=client_state,
            expiration_date_time=remote.expiration_date_time,
        )
        try:
            await self.registry.insert(record)
        except RegistryError as e:
            logger.error(f"Subscription {remote.id} for {label} was created but could not be stored: {e}")
            return ProvisionItem(
                resource_class=resource_class,
                status=ProvisionStatus.FAILED,
                team_id=team_id,
                team_name=team_name,
                subscription_id=remote.id,
                expiration_date_time=remote.expiration_date_time,
                error_kind=ErrorKind.REGISTRY,
                reason=str(e),
            )

        logger.info(f"Subscription for {label} created: {remote.id} until {remote.expiration_date_time}")
        return ProvisionItem(
            resource_class=resource_class,
            status=ProvisionStatus.CREATED,
            team_id=team_id,
            team_name=team_name,
            subscription_id=remote.id,
            expiration_date_time=remote.expiration_date_time,
        )

    @staticmethod
    def _failed(
        resource_class: ResourceClass,
        error: GraphError,
        team: Optional[Team] = None,
    ) -> ProvisionItem:
        return ProvisionItem(
            resource_class=resource_class,
            status=ProvisionStatus.FAILED,
            team_id=team.id if team else None,
            team_name=team.display_name if team else None,
            error_kind=error_kind_for(error),
            reason=str(error),
        )
