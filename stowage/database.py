"""Database engine, session factory and unit-of-work helpers."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from stowage.config import settings
from stowage.core.exceptions import TransientStorageError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all models."""


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite drops tzinfo on the way out, so naive values read back are
    re-tagged as UTC. Aware values are normalised to UTC on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to PostgreSQL."""
    url = url or settings.database_url
    kwargs: dict = {"echo": settings.debug}
    if url.startswith("postgresql"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **kwargs)


engine = build_engine()
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def transactional_session(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Open a session and run the body inside one transaction.

    Commits when the body completes, rolls back on any exception. Transient
    storage failures are re-raised as a retryable TransientStorageError.
    """
    factory = session_factory or async_session_maker
    async with factory() as db:
        try:
            async with db.begin():
                yield db
        except OperationalError as e:
            logger.error(f"Transaction rolled back after storage failure: {e}")
            raise TransientStorageError() from e


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests only; production uses Alembic)."""
    import stowage.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine connection pool."""
    await engine.dispose()
