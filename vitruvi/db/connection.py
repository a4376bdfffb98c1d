"""Database connection and session management for Vitruvi.

The engine is established lazily on first use. Concurrent first requests
share one pending connection attempt; a failed attempt is forgotten so the
next caller starts a fresh one.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vitruvi.config import get_config
from vitruvi.db.models import Base

logger = structlog.get_logger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None
_pending: asyncio.Future | None = None


def _engine_kwargs(url: str) -> dict[str, Any]:
    db_config = get_config().db
    kwargs: dict[str, Any] = {"echo": db_config.echo}

    if "sqlite" in url.lower():
        # SQLite doesn't support connection pooling parameters
        if ":memory:" in url:
            kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
    else:
        kwargs.update({
            "pool_size": db_config.pool_size,
            "max_overflow": db_config.pool_max_overflow,
            "pool_timeout": db_config.pool_timeout,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        })
    return kwargs


async def _establish_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(url, **_engine_kwargs(url))
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        await engine.dispose()
        raise
    return engine


async def connect_db() -> AsyncEngine:
    """Return the shared engine, connecting on first use.

    At most one connection attempt is in flight; every concurrent caller
    awaits the same attempt.

    Raises:
        SQLAlchemyError / OSError: If the database cannot be reached
    """
    global _engine, _session_factory, _pending

    if _engine is not None:
        return _engine

    if _pending is None:
        url = get_config().db.url
        logger.info("db_connecting", dialect=url.split(":", 1)[0])
        _pending = asyncio.ensure_future(_establish_engine(url))
    pending = _pending

    try:
        # shield: a cancelled caller must not cancel the shared attempt
        engine = await asyncio.shield(pending)
    except Exception as exc:
        if _pending is pending:
            _pending = None
            logger.error("db_connect_failed", error=str(exc))
        raise

    if _engine is None:
        _engine = engine
        _session_factory = sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("db_connected")
    if _pending is pending:
        _pending = None
    return _engine


async def get_session_factory() -> sessionmaker:
    """Get the session factory, connecting first if needed."""
    await connect_db()
    assert _session_factory is not None
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session (context manager).

    Usage:
        async with get_session() as session:
            result = await session.execute(query)

    Commits on clean exit, rolls back on exception.
    """
    session_factory = await get_session_factory()
    session = session_factory()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Create all tables.

    Convenience for development and tests; production schemas are managed
    out of band.
    """
    engine = await connect_db()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine and forget any pending connection attempt.

    Call this on application shutdown.
    """
    global _engine, _session_factory, _pending

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _pending = None
