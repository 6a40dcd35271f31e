"""
Dependency probes behind /system/health and /system/ready.

The database is required: if it cannot answer ``SELECT 1`` the service
is UNHEALTHY and readiness fails. Redis is optional: when it is
unreachable or switched off, reads go straight to the database and the
service reports DEGRADED.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.core.cache import RedisCache
from backend.app.core.config import Settings
from backend.app.core.database import ping_db

logger = logging.getLogger(__name__)

_PROCESS_STARTED = time.monotonic()


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# Worst status wins when components are combined
_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    target: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            out["message"] = self.message
        if self.target:
            out["details"] = {"url": self.target}
        return out


@dataclass
class HealthReport:
    version: str = ""
    environment: str = ""
    components: List[ComponentHealth] = field(default_factory=list)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> HealthStatus:
        if not self.components:
            return HealthStatus.HEALTHY
        return max((c.status for c in self.components), key=_SEVERITY.__getitem__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.checked_at.isoformat(),
            "uptime_seconds": round(time.monotonic() - _PROCESS_STARTED, 1),
            "components": [c.to_dict() for c in self.components],
        }


def _redact(url: str) -> str:
    """Keep only host, port and path of a connection URL.

    >>> _redact("postgresql+asyncpg://user:pw@db:5432/geo_alert")
    'db:5432/geo_alert'
    >>> _redact("redis://cache:6379/0")
    'cache:6379/0'
    """
    return url.split("://", 1)[-1].rsplit("@", 1)[-1]


async def _probe(
    name: str,
    ping: Callable[[], Awaitable[Any]],
    *,
    ok_message: str,
    on_failure: HealthStatus,
    url: str = "",
) -> ComponentHealth:
    comp = ComponentHealth(name=name, target=_redact(url) if url else "")
    started = time.monotonic()
    try:
        await ping()
    except Exception as e:
        comp.status = on_failure
        comp.message = str(e) or type(e).__name__
        logger.log(
            logging.ERROR if on_failure is HealthStatus.UNHEALTHY else logging.WARNING,
            "%s probe failed: %s", name, comp.message,
        )
    else:
        comp.message = ok_message
    comp.latency_ms = (time.monotonic() - started) * 1000
    return comp


async def check_database(engine: AsyncEngine, url: str = "") -> ComponentHealth:
    return await _probe(
        "database",
        lambda: ping_db(engine),
        ok_message="Connection pool available",
        on_failure=HealthStatus.UNHEALTHY,
        url=url,
    )


async def check_redis(cache: RedisCache, url: str = "") -> ComponentHealth:
    if not cache.enabled:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.DEGRADED,
            message="Cache disabled",
            target=_redact(url) if url else "",
        )
    return await _probe(
        "redis",
        cache.ping,
        ok_message="Cache available",
        on_failure=HealthStatus.DEGRADED,
        url=url,
    )


async def run_health_check(
    engine: AsyncEngine,
    cache: RedisCache,
    cfg: Settings,
) -> HealthReport:
    """Probe every backing store; the report status is the worst component."""
    return HealthReport(
        version=cfg.APP_VERSION,
        environment=cfg.ENVIRONMENT,
        components=[
            await check_database(engine, cfg.DATABASE_URL),
            await check_redis(cache, cfg.REDIS_URL),
        ],
    )
