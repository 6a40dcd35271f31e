"""
Database layer — async SQL via SQLAlchemy 2.0.

Production runs on PostgreSQL through asyncpg; the test suite runs the
same models on in-memory SQLite through aiosqlite.

Provides:
    • Async engine and session factory builders
    • Declarative base for ORM entities
    • Table creation / disposal helpers for the app lifespan

Usage:
    from backend.app.core.database import build_engine, build_session_factory

    engine = build_engine(settings.DATABASE_URL)
    sessions = build_session_factory(engine)

    async with sessions.begin() as session:
        session.add(IncidentRecord(...))
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backend.app.core.config import Settings

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    kwargs: Dict[str, Any] = dict(overrides)
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def build_engine_from_settings(cfg: Settings) -> AsyncEngine:
    return build_engine(
        cfg.DATABASE_URL,
        pool_size=cfg.DATABASE_POOL_SIZE,
        max_overflow=cfg.DATABASE_MAX_OVERFLOW,
        echo=cfg.DATABASE_ECHO,
    )


# ── Session Factory ──
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Lifecycle ──
async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (dev/test only — use migrations in production)."""
    # Models must be imported so their tables are registered on Base.metadata
    from backend.app.incidents import records  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def ping_db(engine: AsyncEngine) -> None:
    """Round-trip a trivial query; raises on connectivity problems."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine connections."""
    await engine.dispose()
    logger.info("Database connections closed")
