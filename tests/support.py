"""Test doubles shared by unit, property and integration tests."""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Union

from prometheus_sync.clients.graph_client import GraphError
from prometheus_sync.clients.token_provider import AuthFailure, TokenProvider
from prometheus_sync.models.schemas import (
    Principal,
    RemoteSubscription,
    SubscriptionRecord,
    SubscriptionRequest,
    Team,
)
from prometheus_sync.services.registry import RegistryError


class StaticTokenProvider(TokenProvider):
    """Token provider returning a fixed application token."""

    def __init__(self, token: str = "app-token", error: Optional[AuthFailure] = None):
        self.token = token
        self.error = error
        self.calls = 0

    async def get_application_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


class InMemoryRegistry:
    """Dict-backed registry with the same contract as SubscriptionRegistry."""

    def __init__(self, records: Optional[list[SubscriptionRecord]] = None):
        self.records: dict[str, SubscriptionRecord] = {
            record.subscription_id: record for record in records or []
        }
        self.fail_queries = False
        self.fail_writes_for: set[str] = set()

    def _check_write(self, subscription_id: str) -> None:
        if subscription_id in self.fail_writes_for:
            raise RegistryError(f"write failed for {subscription_id}")

    async def find_expiring_before(self, instant: datetime) -> list[SubscriptionRecord]:
        if self.fail_queries:
            raise RegistryError("database unavailable")
        candidates = [r for r in self.records.values() if r.expiration_date_time <= instant]
        return sorted(candidates, key=lambda r: r.expiration_date_time)

    async def list_for_user(self, user_id: str) -> list[SubscriptionRecord]:
        if self.fail_queries:
            raise RegistryError("database unavailable")
        owned = [r for r in self.records.values() if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.expiration_date_time)

    async def insert(self, record: SubscriptionRecord) -> None:
        self._check_write(record.subscription_id)
        if record.subscription_id in self.records:
            raise RegistryError(f"duplicate {record.subscription_id}")
        self.records[record.subscription_id] = record

    async def upsert(self, record: SubscriptionRecord) -> None:
        self._check_write(record.subscription_id)
        self.records[record.subscription_id] = record

    async def delete_by_id(self, subscription_id: str) -> bool:
        self._check_write(subscription_id)
        return self.records.pop(subscription_id, None) is not None


Outcome = Union[GraphError, Callable[[datetime], datetime], None]


class ScriptedGraphClient:
    """Graph client double whose outcomes are scripted per call target.

    ``renew_outcomes`` and ``create_outcomes`` map a subscription id (renew) or
    a resource string (create) to an exception to raise or a function turning
    the requested expiration into the granted one. Unscripted calls succeed
    and grant exactly what was requested.
    """

    def __init__(
        self,
        principal: Union[Principal, GraphError, None] = None,
        teams: Union[list[Team], GraphError, None] = None,
    ):
        self.principal = principal or Principal(id="p-1", user_principal_name="alice@contoso.com")
        self.teams = teams if teams is not None else []
        self.renew_outcomes: dict[str, Outcome] = {}
        self.create_outcomes: dict[str, Outcome] = {}
        self.renew_calls: list[tuple[str, datetime, str]] = []
        self.create_calls: list[tuple[SubscriptionRequest, str]] = []
        self.deleted: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_id = 0

    async def get_principal(self, token: str) -> Principal:
        if isinstance(self.principal, GraphError):
            raise self.principal
        return self.principal

    async def list_joined_teams(self, token: str) -> list[Team]:
        if isinstance(self.teams, GraphError):
            raise self.teams
        return list(self.teams)

    async def create_subscription(self, request: SubscriptionRequest, token: str) -> RemoteSubscription:
        self.create_calls.append((request, token))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            granted = self._apply(self.create_outcomes.get(request.resource), request.expiration_date_time)
        finally:
            self.in_flight -= 1
        self._next_id += 1
        return RemoteSubscription(
            id=f"sub-{self._next_id}",
            resource=request.resource,
            expiration_date_time=granted,
            change_type=request.change_type,
            client_state=request.client_state,
        )

    async def renew_subscription(self, subscription_id: str, expiration: datetime, token: str) -> RemoteSubscription:
        self.renew_calls.append((subscription_id, expiration, token))
        granted = self._apply(self.renew_outcomes.get(subscription_id), expiration)
        return RemoteSubscription(id=subscription_id, expiration_date_time=granted)

    async def delete_subscription(self, subscription_id: str, token: str) -> None:
        self.deleted.append(subscription_id)

    @staticmethod
    def _apply(outcome: Outcome, requested: datetime) -> datetime:
        if isinstance(outcome, GraphError):
            raise outcome
        if callable(outcome):
            return outcome(requested)
        return requested

    @property
    def renewed_ids(self) -> list[str]:
        return [call[0] for call in self.renew_calls]
