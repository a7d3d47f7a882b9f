"""SQLAlchemy database models for Prometheus.

The engine is owned by an explicitly constructed :class:`Database` handle.
It is created once at process start (see ``main.lifespan``), shared by every
request and by the renewal scheduler, and disposed at shutdown.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# ============================================================================
# Subscription Model
# ============================================================================

class Subscription(Base):
    """Graph change-notification subscription tracked locally.

    A row exists iff the remote subscription is believed to still exist.
    ``resource`` never changes after insert; renewal only moves
    ``expiration_date_time``.
    """
    __tablename__ = "subscriptions"

    subscription_id: str = Column(String(64), primary_key=True)
    user_id: str = Column(String(255), nullable=False, index=True)
    team_id: Optional[str] = Column(String(64), nullable=True)
    team_name: Optional[str] = Column(String(255), nullable=True)
    resource: str = Column(String(512), nullable=False)
    change_type: str = Column(String(100), nullable=False, default="created,updated")
    client_state: str = Column(String(128), nullable=False)
    expiration_date_time: datetime = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    created_at: datetime = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
    )
    updated_at: datetime = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.subscription_id}, user_id={self.user_id}, "
            f"resource={self.resource}, expires={self.expiration_date_time})>"
        )


# ============================================================================
# Database Handle
# ============================================================================

class Database:
    """Process-wide database handle (engine plus session factory)."""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = url
        self._engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self._session_maker = async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with db.session() as session``."""
        return self._session_maker()

    async def create_all(self) -> None:
        """Create tables that do not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()
