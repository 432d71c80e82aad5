"""
Engine and session lifecycle for the arena database.

One engine per process, created by ``init_db`` in the server lifespan (or by
the test fixtures) and disposed by ``close_db``. Every unit of work runs in
a session that commits when the block succeeds and rolls back otherwise;
``get_session`` exposes that to FastAPI, ``session_scope`` to everything
else.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tycoon.data.config import get_settings
from tycoon.data.models import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Arena database is not initialized; call init_db() first")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _async_session_factory is None:
        raise RuntimeError("Arena database is not initialized; call init_db() first")
    return _async_session_factory


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make SQLite take the write lock at BEGIN so row-lock semantics hold."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable the driver's own BEGIN handling; we emit it below.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def init_db(database_url: Optional[str] = None) -> None:
    """
    Create the engine and session factory.

    Args:
        database_url: Overrides DATABASE_URL (tests point this at SQLite).
    """
    global _engine, _async_session_factory

    settings = get_settings()
    url = database_url or settings.database_url
    logger.info(f"Connecting to arena database at {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        _engine = create_async_engine(url, echo=settings.db_echo)
        _use_immediate_transactions(_engine)
    else:
        _engine = create_async_engine(url, **settings.get_engine_kwargs())

    # Rows are re-read under FOR UPDATE, so nothing flushes implicitly
    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def close_db() -> None:
    global _engine, _async_session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _async_session_factory = None
    logger.info("Arena database connection closed")


async def create_tables() -> None:
    """Create the schema from the ORM metadata (dev and tests; Alembic owns production)."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.warning("Arena tables created from metadata, bypassing migrations")


async def drop_tables() -> None:
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("Arena tables dropped")


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Session that commits when the block succeeds and rolls back otherwise.

        async with session_scope() as session:
            seat = await session.get(Seat, seat_id)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one committed-or-rolled-back session per request."""
    async with session_scope() as session:
        yield session
