"""
models.py — Shared data structures for incidents and location checks.

Defines:
    • Incident            — a circular geofenced zone
    • IncidentPatch       — field mask for partial updates
    • IncidentStats       — distinct users per zone over a time window
    • LocationCheck       — one submitted coordinate sample
    • LocationCheckResult — answer returned to the checking client
    • validate_coordinates / validate_radius — invariants shared by the
      incident manager and the location-check orchestrator
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.app.core.errors import InvalidCoordinatesError, InvalidRadiusError
from backend.app.spatial.radius_utils import (
    Coordinate,
    latitude_in_range,
    longitude_in_range,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ═══════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════

def validate_coordinates(latitude: float, longitude: float) -> None:
    if not latitude_in_range(latitude):
        raise InvalidCoordinatesError(
            f"latitude must be between -90 and 90, got {latitude}",
            field="latitude",
        )
    if not longitude_in_range(longitude):
        raise InvalidCoordinatesError(
            f"longitude must be between -180 and 180, got {longitude}",
            field="longitude",
        )


def validate_radius(radius: float) -> None:
    if not (radius > 0) or math.isinf(radius):
        raise InvalidRadiusError(
            f"radius must be a positive number of meters, got {radius}",
            field="radius",
        )


# ═══════════════════════════════════════════════════════════════════════════
# Incident
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Incident:
    """A geofenced hazard zone; radius is in meters."""
    title: str
    latitude: float
    longitude: float
    radius: float
    description: str = ""
    is_active: bool = True

    # Assigned by the store on create
    id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def center(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id) if self.id else None,
            "title": self.title,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius": self.radius,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Incident":
        """Inverse of to_dict (used for cache payloads). Raises on bad shape."""
        return cls(
            id=uuid.UUID(data["id"]) if data.get("id") else None,
            title=data["title"],
            description=data.get("description", ""),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            radius=float(data["radius"]),
            is_active=bool(data.get("is_active", True)),
            created_at=_parse_dt(data.get("created_at")),
            updated_at=_parse_dt(data.get("updated_at")),
        )


@dataclass
class IncidentPatch:
    """
    Field mask for a partial update: one slot per mutable attribute.

    None means "not supplied" — the attribute is left untouched.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    is_active: Optional[bool] = None

    def supplied(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.supplied()

    @property
    def touches_coordinates(self) -> bool:
        return self.latitude is not None or self.longitude is not None

    @property
    def touches_radius(self) -> bool:
        return self.radius is not None

    def apply_to(self, incident: Incident) -> Incident:
        """Return a copy of ``incident`` with the supplied fields replaced."""
        return replace(incident, **self.supplied())


@dataclass
class IncidentStats:
    zone_id: uuid.UUID
    user_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"zone_id": str(self.zone_id), "user_count": self.user_count}


# ═══════════════════════════════════════════════════════════════════════════
# Location checks
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class LocationCheck:
    """One user coordinate sample; immutable except for webhook_sent."""
    user_id: str
    latitude: float
    longitude: float

    # Assigned by the store on create
    id: Optional[uuid.UUID] = None
    checked_at: Optional[datetime] = None
    webhook_sent: bool = False


@dataclass
class LocationCheckResult:
    incidents: List[Incident] = field(default_factory=list)
    check_id: Optional[uuid.UUID] = None

    @property
    def has_danger(self) -> bool:
        return len(self.incidents) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_danger": self.has_danger,
            "incidents": [i.to_dict() for i in self.incidents],
        }
