"""Async SQLAlchemy engine for the storefront (source) database.

Provides:
- SourceBase: Declarative base for the storefront tables we read and merge
- get_engine(): lazily created engine singleton
- get_session_factory(): async_sessionmaker bound to the engine
- check_connection(): round-trip probe used by readiness checks
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.hubsync.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url
        kwargs: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            # Enough connections for every in-flight sync task plus API reads
            kwargs.update(
                pool_size=max(5, settings.SYNC_CONCURRENCY * 2),
                max_overflow=5,
                pool_recycle=3600,
                pool_timeout=30,
            )
        _engine = create_async_engine(url, **kwargs)
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────


class SourceBase(DeclarativeBase):
    """Base class for storefront table mappings."""


# ── Session Factory ─────────────────────────────────────────────────────────


def get_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the given engine (default: singleton)."""
    return async_sessionmaker(engine or get_engine(), expire_on_commit=False)


async def check_connection() -> None:
    """Execute a trivial query; raises if the store is unreachable."""
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
