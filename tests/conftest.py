"""
Shared fixtures.

Stores run against in-memory SQLite (aiosqlite, one StaticPool
connection). Async code is driven from synchronous tests with
``asyncio.run``; every scenario gets a fresh engine on its own loop.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.core.database import build_engine, build_session_factory, close_db, init_db
from backend.app.incidents.store import IncidentStore
from backend.app.location.check_store import LocationCheckStore

SQLITE_URL = "sqlite+aiosqlite://"


def make_sqlite_engine() -> AsyncEngine:
    return build_engine(SQLITE_URL, poolclass=StaticPool)


@dataclass
class DbHarness:
    engine: AsyncEngine
    sessions: async_sessionmaker[AsyncSession]
    incidents: IncidentStore
    checks: LocationCheckStore


@pytest.fixture
def run_db() -> Callable[[Callable[[DbHarness], Awaitable[Any]]], Any]:
    """Run ``scenario(db)`` against a freshly created schema."""

    def _run(scenario: Callable[[DbHarness], Awaitable[Any]]) -> Any:
        async def _go():
            engine = make_sqlite_engine()
            await init_db(engine)
            sessions = build_session_factory(engine)
            try:
                return await scenario(DbHarness(
                    engine=engine,
                    sessions=sessions,
                    incidents=IncidentStore(sessions),
                    checks=LocationCheckStore(sessions),
                ))
            finally:
                await close_db(engine)

        return asyncio.run(_go())

    return _run


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (get/set/delete/ping/aclose)."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = fail
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key: str) -> int:
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self.closed = True

    def load(self, key: str, value: Any) -> None:
        self.data[key] = value if isinstance(value, str) else json.dumps(value)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
