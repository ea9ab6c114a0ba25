"""Database configuration and session management.

Provides async SQLAlchemy engine, session factory and the unit-of-work
helper used by application services.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from backoffice.domain.exceptions import ConflictError
from backoffice.infrastructure.config import settings

# Base class for models
Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINT works.

    The sqlite3 driver emits its own BEGIN lazily, which breaks nested
    transactions. Disabling that and emitting BEGIN from the engine
    restores correct SAVEPOINT semantics.

    Args:
        engine: Async engine bound to an aiosqlite URL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


def get_engine() -> AsyncEngine:
    """Get the async engine singleton.

    Returns:
        AsyncEngine bound to the configured database URL.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
        if _engine.dialect.name == "sqlite":
            enable_sqlite_savepoints(_engine)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory singleton.

    Returns:
        Session factory producing AsyncSession instances.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Services commit their own units of work; anything left pending when the
    request ends is rolled back.

    Yields:
        AsyncSession for database operations.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a block as one all-or-nothing unit of work.

    Commits when the block exits normally and rolls back on any exception.
    A constraint violation the block did not handle itself, at flush or
    at commit, is re-raised as a ConflictError; anything else is re-raised
    unchanged.

    Args:
        session: Session the unit of work runs on.

    Yields:
        The same session.
    """
    try:
        yield session
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(
            "Change conflicts with existing catalog data",
            details={"error": str(exc.orig)},
        ) from exc
    except Exception:
        await session.rollback()
        raise
