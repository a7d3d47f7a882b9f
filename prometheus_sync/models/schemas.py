"""Pydantic schemas for the Prometheus subscription service."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


# ============================================================================
# Enums
# ============================================================================

class ResourceClass(str, Enum):
    """Category of remote entity watched by a subscription."""
    TEAMS_CHAT = "teams_chat"
    OUTLOOK_MAIL = "outlook_mail"
    TEAMS_CHANNEL = "teams_channel"


class ProvisionStatus(str, Enum):
    """Outcome of one creation attempt."""
    CREATED = "created"
    FAILED = "failed"
    SKIPPED = "skipped"  # expected refusal, e.g. guests listing teams


class RenewalStatus(str, Enum):
    """Outcome of one renewal attempt."""
    RENEWED = "renewed"
    DELETED = "deleted"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Failure class attached to a failed item."""
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    REJECTED = "rejected"
    REGISTRY = "registry"


DEFAULT_CHANGE_TYPE = "created,updated"


# ============================================================================
# Subscription Schemas
# ============================================================================

class SubscriptionRecord(BaseModel):
    """A locally tracked subscription."""
    subscription_id: str = Field(..., description="Provider-assigned identifier")
    user_id: str = Field(..., description="Owning user")
    team_id: Optional[str] = Field(None, description="Team (channel subscriptions only)")
    team_name: Optional[str] = Field(None, description="Team display name")
    resource: str = Field(..., description="Watched resource path")
    change_type: str = Field(DEFAULT_CHANGE_TYPE, description="Comma separated change kinds")
    client_state: str = Field(..., description="Correlation tag echoed on notifications")
    expiration_date_time: datetime = Field(..., description="Provider expiration instant (UTC)")


class SubscriptionSummary(BaseModel):
    """A tracked subscription as listed to operators; the clientState stays private."""
    subscription_id: str
    user_id: str
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    resource: str
    change_type: str
    expiration_date_time: datetime

    @classmethod
    def from_record(cls, record: SubscriptionRecord) -> "SubscriptionSummary":
        return cls(**record.model_dump(exclude={"client_state"}))


class SubscriptionRequest(BaseModel):
    """Payload for creating a remote subscription."""
    resource: str
    notification_url: str
    expiration_date_time: datetime
    client_state: str
    change_type: str = DEFAULT_CHANGE_TYPE
    include_resource_data: bool = False


class RemoteSubscription(BaseModel):
    """Subscription as reported by the provider."""
    id: str
    resource: Optional[str] = None
    expiration_date_time: datetime
    change_type: Optional[str] = None
    client_state: Optional[str] = None


class Principal(BaseModel):
    """Signed-in user's directory identity."""
    id: str
    user_principal_name: str
    display_name: Optional[str] = None


class Team(BaseModel):
    """Team the user has joined."""
    id: str
    display_name: Optional[str] = None


# ============================================================================
# Provisioning Schemas
# ============================================================================

class ProvisionItem(BaseModel):
    """Result for one attempted resource class (or one team)."""
    resource_class: ResourceClass
    status: ProvisionStatus
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    subscription_id: Optional[str] = None
    expiration_date_time: Optional[datetime] = None
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None


class ProvisionResult(BaseModel):
    """Aggregate result of provisioning one user."""
    user_id: str
    principal_name: str
    items: list[ProvisionItem] = Field(default_factory=list)

    @computed_field
    @property
    def created_count(self) -> int:
        return sum(1 for item in self.items if item.status == ProvisionStatus.CREATED)

    @computed_field
    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.items if item.status == ProvisionStatus.FAILED)

    @computed_field
    @property
    def message(self) -> str:
        return f"{self.created_count} subscription(s) created successfully"


# ============================================================================
# Renewal Schemas
# ============================================================================

class RenewalItem(BaseModel):
    """Result for one renewal candidate."""
    subscription_id: str
    resource: str
    status: RenewalStatus
    expiration_date_time: Optional[datetime] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None


class RenewalReport(BaseModel):
    """Report of one renewal pass."""
    checked_at: datetime
    lookahead: datetime
    total_candidates: int = 0
    completed: bool = True
    message: Optional[str] = None
    results: list[RenewalItem] = Field(default_factory=list)

    @computed_field
    @property
    def processed(self) -> int:
        return len(self.results)

    def count(self, status: RenewalStatus) -> int:
        return sum(1 for item in self.results if item.status == status)
