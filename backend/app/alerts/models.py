"""
models.py — Data structures for webhook match notifications.

Defines:
    • IncidentInfo    — incident summary carried in a notification
    • WebhookPayload  — the JSON body POSTed to the webhook target
    • DeliveryStatus  — final outcome of one notifier send
    • DeliveryReport  — outcome plus attempt bookkeeping (for logs/tests)

Wire format:

    {
        "user_id": "user-42",
        "latitude": 55.7558, "longitude": 37.6173,
        "incidents": [
            {"id": "…", "title": "…", "description": "…",
             "latitude": …, "longitude": …, "radius": 100.0}
        ],
        "checked_at": "2026-10-17T09:30:00+00:00"
    }
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from backend.app.incidents.models import Incident, LocationCheck


@dataclass(frozen=True)
class IncidentInfo:
    id: str
    title: str
    description: str
    latitude: float
    longitude: float
    radius: float

    @classmethod
    def from_incident(cls, incident: Incident) -> "IncidentInfo":
        return cls(
            id=str(incident.id),
            title=incident.title,
            description=incident.description,
            latitude=incident.latitude,
            longitude=incident.longitude,
            radius=incident.radius,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius": self.radius,
        }


@dataclass(frozen=True)
class WebhookPayload:
    user_id: str
    latitude: float
    longitude: float
    incidents: List[IncidentInfo]
    checked_at: datetime

    # Not serialised; lets the dispatcher report back to the check store
    check_id: Optional[uuid.UUID] = None

    @classmethod
    def for_check(cls, check: LocationCheck, incidents: Sequence[Incident]) -> "WebhookPayload":
        return cls(
            user_id=check.user_id,
            latitude=check.latitude,
            longitude=check.longitude,
            incidents=[IncidentInfo.from_incident(i) for i in incidents],
            checked_at=check.checked_at,
            check_id=check.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "incidents": [i.to_dict() for i in self.incidents],
            "checked_at": self.checked_at.isoformat(),
        }


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"   # 2xx received
    FAILED    = "failed"      # attempt budget exhausted
    TIMED_OUT = "timed_out"   # overall deadline elapsed first


@dataclass
class DeliveryReport:
    status: DeliveryStatus = DeliveryStatus.FAILED
    attempts: int = 0
    delays: List[float] = field(default_factory=list)
    last_error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "attempts": self.attempts,
            "delays": self.delays,
            "last_error": self.last_error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }
