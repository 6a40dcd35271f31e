"""
FastAPI routes: incident zone management (operator API, API key required).

    POST   /api/v1/incidents              — create a zone
    GET    /api/v1/incidents              — paginated list, newest first
    GET    /api/v1/incidents/active       — active zones (cache-backed)
    GET    /api/v1/incidents/stats        — distinct users per zone in a window
    GET    /api/v1/incidents/{id}         — fetch one zone
    PUT    /api/v1/incidents/{id}         — partial update
    DELETE /api/v1/incidents/{id}         — deactivate (soft delete)
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import get_incident_manager
from backend.app.api.schemas import CreateIncidentRequest, UpdateIncidentRequest
from backend.app.core.errors import ValidationError
from backend.app.core.security import require_api_key
from backend.app.incidents.manager import IncidentManager, normalize_pagination

router = APIRouter(
    prefix="/api/v1/incidents",
    tags=["incidents"],
    dependencies=[Depends(require_api_key)],
)


@router.post("", status_code=201)
async def create_incident(
    body: CreateIncidentRequest,
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    incident = await manager.create_incident(
        title=body.title,
        latitude=body.latitude,
        longitude=body.longitude,
        radius=body.radius,
        description=body.description,
    )
    return incident.to_dict()


@router.get("")
async def list_incidents(
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(20, description="Items per page (1–100)"),
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    page, page_size = normalize_pagination(page, page_size)
    incidents = await manager.get_all_incidents(page, page_size)
    return {
        "data": [i.to_dict() for i in incidents],
        "page": page,
        "page_size": page_size,
    }


@router.get("/active")
async def list_active_incidents(
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    incidents = await manager.list_active_incidents()
    return {"data": [i.to_dict() for i in incidents]}


# Registered before /{incident_id} so "stats" is not parsed as an id
@router.get("/stats")
async def incident_stats(
    minutes: Optional[int] = Query(None, description="Look-back window in minutes"),
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    if minutes is not None and minutes <= 0:
        raise ValidationError("minutes must be a positive integer", field="minutes", value=minutes)
    window = minutes or manager.default_stats_window
    stats = await manager.get_stats(window)
    return {"data": [s.to_dict() for s in stats], "minutes": window}


@router.get("/{incident_id}")
async def get_incident(
    incident_id: uuid.UUID,
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    incident = await manager.get_incident(incident_id)
    return incident.to_dict()


@router.put("/{incident_id}")
async def update_incident(
    incident_id: uuid.UUID,
    body: UpdateIncidentRequest,
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, Any]:
    incident = await manager.update_incident(incident_id, body.to_patch())
    return incident.to_dict()


@router.delete("/{incident_id}")
async def delete_incident(
    incident_id: uuid.UUID,
    manager: IncidentManager = Depends(get_incident_manager),
) -> Dict[str, str]:
    await manager.delete_incident(incident_id)
    return {"message": "Incident deleted successfully"}
