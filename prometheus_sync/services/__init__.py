"""Business services package."""

from prometheus_sync.services.provisioner import Provisioner
from prometheus_sync.services.registry import RegistryError, SubscriptionRegistry
from prometheus_sync.services.renewal_service import RenewalService

__all__ = [
    "Provisioner",
    "RegistryError",
    "SubscriptionRegistry",
    "RenewalService",
]
