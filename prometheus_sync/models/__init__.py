"""Database models and Pydantic schemas package."""

from prometheus_sync.models.schemas import (
    # Enums
    ErrorKind,
    ProvisionStatus,
    RenewalStatus,
    ResourceClass,
    # Subscriptions
    Principal,
    RemoteSubscription,
    SubscriptionRecord,
    SubscriptionRequest,
    SubscriptionSummary,
    Team,
    # Results
    ProvisionItem,
    ProvisionResult,
    RenewalItem,
    RenewalReport,
)

from prometheus_sync.models.database import (
    Base,
    Database,
    Subscription,
)

__all__ = [
    # Enums
    "ErrorKind",
    "ProvisionStatus",
    "RenewalStatus",
    "ResourceClass",
    # Subscriptions
    "Principal",
    "RemoteSubscription",
    "SubscriptionRecord",
    "SubscriptionRequest",
    "SubscriptionSummary",
    "Team",
    # Results
    "ProvisionItem",
    "ProvisionResult",
    "RenewalItem",
    "RenewalReport",
    # Database
    "Base",
    "Database",
    "Subscription",
]
