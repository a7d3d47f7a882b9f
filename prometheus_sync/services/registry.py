"""Subscription registry: persistence for locally tracked subscriptions.

Pure data access. Each call runs in its own session and commits on its own,
so every write is an independent single-row insert, merge, or delete.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from prometheus_sync.models.database import Database, Subscription
from prometheus_sync.models.schemas import SubscriptionRecord

logger = logging.getLogger(__name__)

# Drivers surface refused connections as plain OSError
DB_ERRORS = (SQLAlchemyError, OSError)


class RegistryError(Exception):
    """Raised when the persistence layer fails."""
    pass


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC; naive values are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: Subscription) -> SubscriptionRecord:
    return SubscriptionRecord(
        subscription_id=row.subscription_id,
        user_id=row.user_id,
        team_id=row.team_id,
        team_name=row.team_name,
        resource=row.resource,
        change_type=row.change_type,
        client_state=row.client_state,
        expiration_date_time=as_utc(row.expiration_date_time),
    )


def _to_row(record: SubscriptionRecord) -> Subscription:
    return Subscription(
        subscription_id=record.subscription_id,
        user_id=record.user_id,
        team_id=record.team_id,
        team_name=record.team_name,
        resource=record.resource,
        change_type=record.change_type,
        client_state=record.client_state,
        expiration_date_time=as_utc(record.expiration_date_time),
    )


class SubscriptionRegistry:
    """Registry backed by the ``subscriptions`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def find_expiring_before(self, instant: datetime) -> list[SubscriptionRecord]:
        """Subscriptions whose expiration is at or before ``instant``."""
        query = (
            select(Subscription)
            .where(Subscription.expiration_date_time <= as_utc(instant))
            .order_by(Subscription.expiration_date_time.asc())
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                return [_to_record(row) for row in result.scalars().all()]
        except DB_ERRORS as e:
            raise RegistryError(f"Failed to query expiring subscriptions: {e}") from e

    async def list_for_user(self, user_id: str) -> list[SubscriptionRecord]:
        """All of a user's subscriptions, soonest expiry first."""
        query = (
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.expiration_date_time.asc())
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                return [_to_record(row) for row in result.scalars().all()]
        except DB_ERRORS as e:
            raise RegistryError(f"Failed to list subscriptions for user {user_id}: {e}") from e

    async def insert(self, record: SubscriptionRecord) -> None:
        """Insert a new subscription; fails if the id already exists."""
        try:
            async with self.db.session() as session:
                session.add(_to_row(record))
                await session.commit()
        except DB_ERRORS as e:
            raise RegistryError(f"Failed to insert subscription {record.subscription_id}: {e}") from e
        logger.info(f"Stored subscription {record.subscription_id} for user {record.user_id}")

    async def upsert(self, record: SubscriptionRecord) -> None:
        """Insert or replace a subscription by id."""
        try:
            async with self.db.session() as session:
                await session.merge(_to_row(record))
                await session.commit()
        except DB_ERRORS as e:
            raise RegistryError(f"Failed to upsert subscription {record.subscription_id}: {e}") from e

    async def delete_by_id(self, subscription_id: str) -> bool:
        """Delete a subscription; returns False if it was not stored."""
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    delete(Subscription).where(Subscription.subscription_id == subscription_id)
                )
                await session.commit()
        except DB_ERRORS as e:
            raise RegistryError(f"Failed to delete subscription {subscription_id}: {e}") from e
        return (result.rowcount or 0) > 0
