"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from prometheus_sync.main import app
from prometheus_sync.models.database import Database
from prometheus_sync.models.schemas import SubscriptionRecord
from prometheus_sync.services.registry import SubscriptionRegistry

from support import InMemoryRegistry, ScriptedGraphClient, StaticTokenProvider


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed clock value used by time-sensitive tests."""
    return NOW


@pytest.fixture
def client():
    """Create a test client for the FastAPI application."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def database(tmp_path):
    """SQLite database file, fresh for every test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'subscriptions.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def sql_registry(database) -> SubscriptionRegistry:
    return SubscriptionRegistry(database)


@pytest.fixture
def memory_registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
def graph() -> ScriptedGraphClient:
    return ScriptedGraphClient()


@pytest.fixture
def make_record():
    """Factory for subscription records expiring relative to NOW."""

    def _make(
        subscription_id: str,
        expires_in_minutes: float,
        resource: str = "users/alice@contoso.com/chats/getAllMessages",
        user_id: str = "user-1",
        team_id: Optional[str] = None,
    ) -> SubscriptionRecord:
        return SubscriptionRecord(
            subscription_id=subscription_id,
            user_id=user_id,
            team_id=team_id,
            resource=resource,
            client_state=f"secureChatsValue:{user_id}:nonce",
            expiration_date_time=NOW + timedelta(minutes=expires_in_minutes),
        )

    return _make
