"""Resource-class policy for Graph change-notification subscriptions.

Every subscription's validity window is derived from its ``resource`` string,
both when it is first created and each time it is renewed:

- mail resources (``.../messages`` that are not chat messages) tolerate
  multi-day validity, so they are requested close to the provider's maximum;
- chat and channel message resources are capped near one hour by the provider,
  so they are requested with a 55 minute window to absorb clock skew and
  network latency.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from prometheus_sync.models.schemas import ResourceClass


# Validity windows (in minutes)
CHAT_VALIDITY_MINUTES = 55
MAIL_VALIDITY_MINUTES = 4230


@dataclass(frozen=True)
class ResourceClassPolicy:
    """How one resource class is subscribed to."""
    resource_template: str
    notification_path: str
    client_state_prefix: str
    validity_minutes: int


POLICIES: dict[ResourceClass, ResourceClassPolicy] = {
    ResourceClass.TEAMS_CHAT: ResourceClassPolicy(
        resource_template="users/{principal}/chats/getAllMessages",
        notification_path="/webhook/teams",
        client_state_prefix="secureChatsValue",
        validity_minutes=CHAT_VALIDITY_MINUTES,
    ),
    ResourceClass.OUTLOOK_MAIL: ResourceClassPolicy(
        resource_template="users/{principal}/messages",
        notification_path="/webhook/outlook",
        client_state_prefix="secureOutlookValue",
        validity_minutes=MAIL_VALIDITY_MINUTES,
    ),
    ResourceClass.TEAMS_CHANNEL: ResourceClassPolicy(
        resource_template="teams/{team_id}/channels/getAllMessages",
        notification_path="/webhook/teams-channels",
        client_state_prefix="secureTeamsChannelsValue",
        validity_minutes=CHAT_VALIDITY_MINUTES,
    ),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_mail_resource(resource: str) -> bool:
    """A mail resource denotes messages but not chats."""
    return "messages" in resource and "chats" not in resource


def validity_minutes_for(resource: str) -> int:
    """Renewal window for a stored resource string."""
    if is_mail_resource(resource):
        return MAIL_VALIDITY_MINUTES
    return CHAT_VALIDITY_MINUTES


def expiration_for(resource: str, now: Optional[datetime] = None) -> datetime:
    """Expiration to request for ``resource`` starting from ``now``."""
    now = now or utcnow()
    return now + timedelta(minutes=validity_minutes_for(resource))


def build_resource(
    resource_class: ResourceClass,
    principal: Optional[str] = None,
    team_id: Optional[str] = None,
) -> str:
    """Render the Graph resource path for a resource class."""
    template = POLICIES[resource_class].resource_template
    if resource_class == ResourceClass.TEAMS_CHANNEL:
        if not team_id:
            raise ValueError("team_id is required for channel subscriptions")
        return template.format(team_id=team_id)
    if not principal:
        raise ValueError("principal is required for user subscriptions")
    return template.format(principal=principal)


def notification_url_for(resource_class: ResourceClass, webhook_base_url: str) -> str:
    return f"{webhook_base_url.rstrip('/')}{POLICIES[resource_class].notification_path}"
