"""Process-wide service wiring.

``build_services`` is called once at process start. The returned handles are
shared by every request and by the renewal scheduler; ``Services.close``
releases the database engine at shutdown.
"""

from dataclasses import dataclass
from typing import Optional

from prometheus_sync.clients.graph_client import GraphClient
from prometheus_sync.clients.token_provider import ClientCredentialsTokenProvider, TokenProvider
from prometheus_sync.core.config import Settings, settings as default_settings
from prometheus_sync.models.database import Database
from prometheus_sync.services.provisioner import Provisioner
from prometheus_sync.services.registry import SubscriptionRegistry
from prometheus_sync.services.renewal_service import RenewalService


@dataclass
class Services:
    """Shared service handles."""
    db: Database
    registry: SubscriptionRegistry
    graph_client: GraphClient
    token_provider: TokenProvider
    provisioner: Provisioner
    renewal_service: RenewalService

    async def close(self) -> None:
        await self.db.dispose()


def build_services(
    config: Optional[Settings] = None,
    token_provider: Optional[TokenProvider] = None,
    graph_client: Optional[GraphClient] = None,
) -> Services:
    """Construct every shared service from settings."""
    if config is None:
        config = default_settings
    db = Database(config.database_url, echo=config.debug)
    registry = SubscriptionRegistry(db)
    graph_client = graph_client or GraphClient(
        base_url=config.graph_base_url,
        timeout_seconds=config.graph_timeout_seconds,
    )
    token_provider = token_provider or ClientCredentialsTokenProvider(
        tenant_id=config.azure_tenant_id,
        client_id=config.azure_client_id,
        client_secret=config.azure_client_secret,
        authority=config.azure_authority,
        timeout_seconds=config.graph_timeout_seconds,
    )
    provisioner = Provisioner(
        graph_client,
        registry,
        token_provider,
        webhook_base_url=config.webhook_public_url,
        team_concurrency=config.team_subscription_concurrency,
    )
    renewal_service = RenewalService(
        graph_client,
        registry,
        token_provider,
        lookahead_minutes=config.renewal_lookahead_minutes,
    )
    return Services(
        db=db,
        registry=registry,
        graph_client=graph_client,
        token_provider=token_provider,
        provisioner=provisioner,
        renewal_service=renewal_service,
    )
