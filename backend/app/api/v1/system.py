"""
FastAPI routes: liveness and readiness probes (public).

    GET /api/v1/system/health — always 200, with the component report
    GET /api/v1/system/ready  — 503 while the database is unreachable
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.app.api.deps import get_container
from backend.app.core.container import ServiceContainer
from backend.app.core.health import HealthStatus, run_health_check

router = APIRouter(prefix="/api/v1/system", tags=["health"])


@router.get("/health")
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Deep health probe — checks all subsystems."""
    report = await run_health_check(container.engine, container.cache, container.settings)
    return report.to_dict()


@router.get("/ready")
async def readiness(container: ServiceContainer = Depends(get_container)):
    """Readiness probe — can we serve traffic?"""
    report = await run_health_check(container.engine, container.cache, container.settings)
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
