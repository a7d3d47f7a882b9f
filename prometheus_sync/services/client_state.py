"""clientState correlation tags.

Graph echoes a subscription's ``clientState`` on every notification. The tag
encodes the owning user (and team, for channel subscriptions) followed by an
unpredictable nonce::

    secureChatsValue:<user_id>:<nonce>
    secureOutlookValue:<user_id>:<nonce>
    secureTeamsChannelsValue:<user_id>:<team_id>:<nonce>
"""

import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from prometheus_sync.models.schemas import ResourceClass
from prometheus_sync.services.subscription_policy import POLICIES


# Graph rejects clientState values longer than this
MAX_CLIENT_STATE_LENGTH = 128
SEPARATOR = ":"

# Graph team ids are GUIDs
TEAM_ID_LENGTH = 36
NONCE_BYTES = 12
NONCE_LENGTH = 16  # urlsafe base64 of NONCE_BYTES

NonceFactory = Callable[[], str]


class InvalidClientStateError(ValueError):
    """Raised when a clientState cannot be built or decoded."""
    pass


@dataclass(frozen=True)
class Correlation:
    """Owner decoded from a clientState tag."""
    resource_class: ResourceClass
    user_id: str
    team_id: Optional[str] = None


_PREFIX_TO_CLASS = {
    policy.client_state_prefix: resource_class
    for resource_class, policy in POLICIES.items()
}

# Longest user_id whose tag fits the limit for every resource class
MAX_USER_ID_LENGTH = (
    MAX_CLIENT_STATE_LENGTH
    - max(len(prefix) for prefix in _PREFIX_TO_CLASS)
    - TEAM_ID_LENGTH
    - NONCE_LENGTH
    - 3 * len(SEPARATOR)
)


def default_nonce() -> str:
    return secrets.token_urlsafe(NONCE_BYTES)


def validate_user_id(user_id: str) -> None:
    """Reject user ids that cannot be embedded in every kind of tag."""
    if not user_id or SEPARATOR in user_id:
        raise InvalidClientStateError(f"user_id must be non-empty and free of '{SEPARATOR}'")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise InvalidClientStateError(
            f"user_id is {len(user_id)} characters, limit is {MAX_USER_ID_LENGTH}"
        )


def build_client_state(
    resource_class: ResourceClass,
    user_id: str,
    team_id: Optional[str] = None,
    nonce_factory: NonceFactory = default_nonce,
) -> str:
    """Build the clientState tag for a new subscription."""
    parts = [POLICIES[resource_class].client_state_prefix, user_id]
    if resource_class == ResourceClass.TEAMS_CHANNEL:
        if not team_id:
            raise InvalidClientStateError("team_id is required for channel subscriptions")
        parts.append(team_id)
    parts.append(nonce_factory())

    if any(not part or SEPARATOR in part for part in parts):
        raise InvalidClientStateError(f"clientState parts must be non-empty and free of '{SEPARATOR}'")

    value = SEPARATOR.join(parts)
    if len(value) > MAX_CLIENT_STATE_LENGTH:
        raise InvalidClientStateError(
            f"clientState is {len(value)} characters, limit is {MAX_CLIENT_STATE_LENGTH}"
        )
    return value


def parse_client_state(value: Optional[str]) -> Correlation:
    """Decode the owner of a notification from its clientState."""
    if not value:
        raise InvalidClientStateError("clientState is empty")

    parts = value.split(SEPARATOR)
    resource_class = _PREFIX_TO_CLASS.get(parts[0])
    if resource_class is None:
        raise InvalidClientStateError(f"Unknown clientState prefix: {parts[0]!r}")

    expected = 4 if resource_class == ResourceClass.TEAMS_CHANNEL else 3
    if len(parts) != expected or not all(parts):
        raise InvalidClientStateError(f"Malformed clientState for {resource_class.value}")

    if resource_class == ResourceClass.TEAMS_CHANNEL:
        return Correlation(resource_class, user_id=parts[1], team_id=parts[2])
    return Correlation(resource_class, user_id=parts[1])
