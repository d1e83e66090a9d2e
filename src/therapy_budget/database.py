"""Async SQLAlchemy wiring for the therapy budget service.

Provides the declarative ``Base``, the shared ``TimestampedModel`` columns,
engine/session initialisation, the ``get_db_session`` FastAPI dependency and
a generic ``BaseRepository``.
"""

from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base holding the metadata for all ORM models."""


class TimestampedModel(Base):
    """Abstract base supplying an integer id and audit timestamps."""

    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(url: str, echo: bool = False) -> AsyncEngine:
    """Create the process-wide async engine and session factory."""
    global _engine, _session_factory
    _engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


async def dispose_database() -> None:
    """Dispose the engine created by ``init_database``."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that commits on success."""
    if _session_factory is None:
        raise RuntimeError("Database not initialised; call init_database() first")
    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic CRUD helpers shared by all repositories."""

    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self._session = session
        self._model = model

    async def create(self, instance: ModelT) -> ModelT:
        """Persist a new instance and refresh server-generated columns."""
        self._session.add(instance)
        await self._session.flush()
        await self._session.refresh(instance)
        return instance

    async def get_by_id(self, instance_id: int) -> ModelT | None:
        """Retrieve an instance by primary key."""
        return await self._session.get(self._model, instance_id)

    async def save(self, instance: ModelT) -> ModelT:
        """Flush pending changes on an already-tracked instance."""
        await self._session.flush()
        await self._session.refresh(instance)
        return instance

    async def delete(self, instance: ModelT) -> None:
        """Delete an instance."""
        await self._session.delete(instance)
        await self._session.flush()
