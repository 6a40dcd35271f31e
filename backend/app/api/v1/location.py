"""
FastAPI route: public location check.

    POST /api/v1/location/check — is this point inside any active zone?

Responds as soon as the check is stored; the webhook for a match is
delivered in the background.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from backend.app.api.deps import get_location_service
from backend.app.api.schemas import LocationCheckRequest
from backend.app.location.service import LocationService

router = APIRouter(prefix="/api/v1/location", tags=["location"])


@router.post("/check")
async def check_location(
    body: LocationCheckRequest,
    service: LocationService = Depends(get_location_service),
) -> Dict[str, Any]:
    result = await service.check_location(body.user_id, body.latitude, body.longitude)
    return result.to_dict()
