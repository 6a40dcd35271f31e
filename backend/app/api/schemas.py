"""
Pydantic schemas for the incident and location-check API.

Separated from the route handlers so they are reusable across
the codebase (tests, scripts).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from backend.app.incidents.models import IncidentPatch


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CreateIncidentRequest(BaseModel):
    """Request body for POST /api/v1/incidents."""
    title: str = Field(..., min_length=1, max_length=255, examples=["Gas leak"])
    description: str = Field("", examples=["Evacuate the block"])
    latitude: float = Field(
        ..., ge=-90.0, le=90.0,
        description="Zone centre latitude in decimal degrees",
        examples=[55.7558],
    )
    longitude: float = Field(
        ..., ge=-180.0, le=180.0,
        description="Zone centre longitude in decimal degrees",
        examples=[37.6173],
    )
    radius: float = Field(..., gt=0, description="Zone radius in meters", examples=[100.0])


class UpdateIncidentRequest(BaseModel):
    """
    Request body for PUT /api/v1/incidents/{id}.

    Every field is optional; omitted (or null) fields keep their value.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)
    radius: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None

    def to_patch(self) -> IncidentPatch:
        return IncidentPatch(
            title=self.title,
            description=self.description,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
            is_active=self.is_active,
        )


class LocationCheckRequest(BaseModel):
    """Request body for POST /api/v1/location/check."""
    user_id: str = Field(..., min_length=1, examples=["user-42"])
    latitude: float = Field(..., ge=-90.0, le=90.0, examples=[55.7558])
    longitude: float = Field(..., ge=-180.0, le=180.0, examples=[37.6173])
