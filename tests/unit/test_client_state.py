"""Unit tests for clientState tags and the resource-class policy."""

from datetime import datetime, timedelta, timezone

import pytest

from prometheus_sync.models.schemas import ResourceClass
from prometheus_sync.services.client_state import (
    MAX_CLIENT_STATE_LENGTH,
    MAX_USER_ID_LENGTH,
    Correlation,
    InvalidClientStateError,
    build_client_state,
    parse_client_state,
    validate_user_id,
)
from prometheus_sync.services.subscription_policy import (
    CHAT_VALIDITY_MINUTES,
    MAIL_VALIDITY_MINUTES,
    build_resource,
    expiration_for,
    is_mail_resource,
    notification_url_for,
    validity_minutes_for,
)


GUID_TEAM_ID = "19a4b7c2-0d3e-4f51-8a6b-7c8d9e0f1a2b"


def fixed_nonce() -> str:
    return "n0nce"


class TestBuildClientState:

    def test_chat(self) -> None:
        value = build_client_state(ResourceClass.TEAMS_CHAT, "user-1", nonce_factory=fixed_nonce)

        assert value == "secureChatsValue:user-1:n0nce"

    def test_mail(self) -> None:
        value = build_client_state(ResourceClass.OUTLOOK_MAIL, "user-1", nonce_factory=fixed_nonce)

        assert value == "secureOutlookValue:user-1:n0nce"

    def test_channel_includes_team(self) -> None:
        value = build_client_state(
            ResourceClass.TEAMS_CHANNEL, "user-1", "team-a", nonce_factory=fixed_nonce
        )

        assert value == "secureTeamsChannelsValue:user-1:team-a:n0nce"

    def test_channel_without_team_fails(self) -> None:
        with pytest.raises(InvalidClientStateError):
            build_client_state(ResourceClass.TEAMS_CHANNEL, "user-1")

    def test_default_nonce_differs_between_calls(self) -> None:
        first = build_client_state(ResourceClass.TEAMS_CHAT, "user-1")
        second = build_client_state(ResourceClass.TEAMS_CHAT, "user-1")

        assert first != second
        assert first.startswith("secureChatsValue:user-1:")

    @pytest.mark.parametrize("user_id", ["", "a:b"])
    def test_rejects_bad_user_id(self, user_id: str) -> None:
        with pytest.raises(InvalidClientStateError):
            build_client_state(ResourceClass.TEAMS_CHAT, user_id)

    def test_rejects_overlong_value(self) -> None:
        with pytest.raises(InvalidClientStateError, match="limit"):
            build_client_state(ResourceClass.TEAMS_CHAT, "u" * MAX_CLIENT_STATE_LENGTH)


class TestUserIdBound:

    def test_bound_leaves_room_for_guid_team_and_nonce(self) -> None:
        assert MAX_USER_ID_LENGTH == 49

    def test_longest_user_id_fits_every_tag(self) -> None:
        user_id = "u" * MAX_USER_ID_LENGTH
        validate_user_id(user_id)

        channel = build_client_state(ResourceClass.TEAMS_CHANNEL, user_id, GUID_TEAM_ID)
        mail = build_client_state(ResourceClass.OUTLOOK_MAIL, user_id)

        assert len(channel) == MAX_CLIENT_STATE_LENGTH
        assert len(mail) < MAX_CLIENT_STATE_LENGTH
        assert parse_client_state(channel).user_id == user_id

    def test_rejects_user_id_over_bound(self) -> None:
        with pytest.raises(InvalidClientStateError, match="limit is 49"):
            validate_user_id("u" * (MAX_USER_ID_LENGTH + 1))

    @pytest.mark.parametrize("user_id", ["", "a:b"])
    def test_rejects_unencodable_user_id(self, user_id: str) -> None:
        with pytest.raises(InvalidClientStateError):
            validate_user_id(user_id)


class TestParseClientState:

    def test_chat(self) -> None:
        assert parse_client_state("secureChatsValue:user-1:abc") == Correlation(
            ResourceClass.TEAMS_CHAT, user_id="user-1"
        )

    def test_channel(self) -> None:
        correlation = parse_client_state("secureTeamsChannelsValue:user-1:team-a:abc")

        assert correlation.resource_class == ResourceClass.TEAMS_CHANNEL
        assert correlation.team_id == "team-a"

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "unknownPrefix:user-1:abc",
            "secureChatsValue:user-1",
            "secureChatsValue::abc",
            "secureOutlookValue:user-1:abc:extra",
            "secureTeamsChannelsValue:user-1:abc",
        ],
    )
    def test_rejects_malformed(self, value) -> None:
        with pytest.raises(InvalidClientStateError):
            parse_client_state(value)


class TestSubscriptionPolicy:

    @pytest.mark.parametrize(
        "resource, expected",
        [
            ("users/alice@contoso.com/messages", True),
            ("me/mailFolders('Inbox')/messages", True),
            ("users/alice@contoso.com/chats/getAllMessages", False),
            ("teams/team-a/channels/getAllMessages", False),
            ("users/alice@contoso.com/events", False),
        ],
    )
    def test_is_mail_resource(self, resource: str, expected: bool) -> None:
        assert is_mail_resource(resource) is expected

    def test_validity_windows(self) -> None:
        assert validity_minutes_for("users/a/messages") == MAIL_VALIDITY_MINUTES == 4230
        assert validity_minutes_for("users/a/chats/getAllMessages") == CHAT_VALIDITY_MINUTES == 55

    def test_expiration_for(self) -> None:
        now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

        assert expiration_for("users/a/chats/getAllMessages", now) == now + timedelta(minutes=55)
        assert expiration_for("users/a/messages", now) == now + timedelta(minutes=4230)

    def test_build_resource(self) -> None:
        assert build_resource(ResourceClass.TEAMS_CHAT, principal="a@b.com") == "users/a@b.com/chats/getAllMessages"
        assert build_resource(ResourceClass.OUTLOOK_MAIL, principal="a@b.com") == "users/a@b.com/messages"
        assert build_resource(ResourceClass.TEAMS_CHANNEL, team_id="t1") == "teams/t1/channels/getAllMessages"

    def test_build_resource_requires_parts(self) -> None:
        with pytest.raises(ValueError):
            build_resource(ResourceClass.TEAMS_CHANNEL)
        with pytest.raises(ValueError):
            build_resource(ResourceClass.OUTLOOK_MAIL)

    def test_notification_url(self) -> None:
        url = notification_url_for(ResourceClass.TEAMS_CHANNEL, "https://hooks.test/")

        assert url == "https://hooks.test/webhook/teams-channels"
