"""
store.py — Persistent incident storage and geo-proximity queries.

Each operation runs in its own short transaction taken from the shared
session factory. SQLAlchemy failures surface as StorageError; missing
rows as NotFoundError.

═══════════════════════════════════════════════════════════════════════════
PROXIMITY QUERY
═══════════════════════════════════════════════════════════════════════════

    Step 1 — SQL latitude-band pre-filter (portable arithmetic):
                 is_active AND |latitude − :lat| · M_PER_DEG ≤ radius
             Sound because the meridian arc never exceeds the
             great-circle distance.
    Step 2 — exact haversine test on the surviving candidates.

Only zones whose band covers the point reach step 2, so the trig runs on
a handful of rows instead of the whole active set.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.errors import NotFoundError, StorageError
from backend.app.incidents.models import Incident, IncidentStats, utcnow
from backend.app.incidents.records import (
    IncidentRecord,
    LocationCheckRecord,
    location_check_incidents,
)
from backend.app.spatial.radius_utils import (
    METERS_PER_DEGREE_LAT,
    Coordinate,
    is_inside_zone,
)

logger = logging.getLogger(__name__)

# Absorbs float rounding between SQL and Python arithmetic
_BAND_SLACK_M = 1.0

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def window_start(minutes: int) -> datetime:
    """Start of a trailing window; windows older than year 1 start at year 1."""
    now = utcnow()
    if minutes >= (now - _EARLIEST) // timedelta(minutes=1):
        return _EARLIEST
    return now - timedelta(minutes=minutes)


def _to_incident(row: IncidentRecord) -> Incident:
    return Incident(
        id=row.id,
        title=row.title,
        description=row.description,
        latitude=row.latitude,
        longitude=row.longitude,
        radius=row.radius,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class IncidentStore:
    """CRUD + proximity + stats over the ``incidents`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def create(self, incident: Incident) -> Incident:
        now = utcnow()
        incident.id = uuid.uuid4()
        incident.created_at = now
        incident.updated_at = now
        try:
            async with self._sessions.begin() as session:
                session.add(IncidentRecord(
                    id=incident.id,
                    title=incident.title,
                    description=incident.description,
                    latitude=incident.latitude,
                    longitude=incident.longitude,
                    radius=incident.radius,
                    is_active=incident.is_active,
                    created_at=incident.created_at,
                    updated_at=incident.updated_at,
                ))
        except SQLAlchemyError as e:
            raise StorageError("create_incident", str(e)) from e
        logger.info(
            "Incident %s created (radius=%.1f m)", incident.id, incident.radius,
            extra={"incident_id": str(incident.id)},
        )
        return incident

    async def get_by_id(self, incident_id: uuid.UUID) -> Incident:
        try:
            async with self._sessions() as session:
                row = await session.get(IncidentRecord, incident_id)
        except SQLAlchemyError as e:
            raise StorageError("get_incident", str(e)) from e
        if row is None:
            raise NotFoundError("Incident", id=incident_id)
        return _to_incident(row)

    async def get_all(self, limit: int, offset: int) -> List[Incident]:
        stmt = (
            select(IncidentRecord)
            .order_by(IncidentRecord.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return await self._fetch(stmt, "list_incidents")

    async def get_active(self) -> List[Incident]:
        stmt = (
            select(IncidentRecord)
            .where(IncidentRecord.is_active.is_(True))
            .order_by(IncidentRecord.created_at.desc())
        )
        return await self._fetch(stmt, "list_active_incidents")

    async def update(self, incident_id: uuid.UUID, incident: Incident) -> Incident:
        """Replace every mutable column of the row."""
        incident.updated_at = utcnow()
        stmt = (
            update(IncidentRecord)
            .where(IncidentRecord.id == incident_id)
            .values(
                title=incident.title,
                description=incident.description,
                latitude=incident.latitude,
                longitude=incident.longitude,
                radius=incident.radius,
                is_active=incident.is_active,
                updated_at=incident.updated_at,
            )
        )
        await self._execute_affecting_one(stmt, "update_incident", incident_id)
        incident.id = incident_id
        return incident

    async def delete(self, incident_id: uuid.UUID) -> None:
        """Soft delete: the row stays, only is_active flips."""
        stmt = (
            update(IncidentRecord)
            .where(IncidentRecord.id == incident_id)
            .values(is_active=False, updated_at=utcnow())
        )
        await self._execute_affecting_one(stmt, "delete_incident", incident_id)
        logger.info(
            "Incident %s deactivated", incident_id,
            extra={"incident_id": str(incident_id)},
        )

    async def find_nearby(self, latitude: float, longitude: float) -> List[Incident]:
        """Active incidents whose zone contains the point (great-circle)."""
        band = func.abs(IncidentRecord.latitude - latitude) * METERS_PER_DEGREE_LAT
        stmt = (
            select(IncidentRecord)
            .where(IncidentRecord.is_active.is_(True))
            .where(band <= IncidentRecord.radius + _BAND_SLACK_M)
            .order_by(IncidentRecord.created_at.desc())
        )
        candidates = await self._fetch(stmt, "find_nearby_incidents")

        point = Coordinate(latitude, longitude)
        matched: List[Incident] = []
        for incident in candidates:
            inside, _ = is_inside_zone(point, incident.center, incident.radius)
            if inside:
                matched.append(incident)

        logger.debug(
            "Proximity (%.5f, %.5f): %d candidates, %d matched",
            latitude, longitude, len(candidates), len(matched),
        )
        return matched

    async def get_stats(self, window_minutes: int) -> List[IncidentStats]:
        """
        Distinct users per active incident over the trailing window.

        Links whose check falls outside the window join to NULL and are
        not counted, so idle zones report 0.
        """
        cutoff = window_start(window_minutes)
        user_count = func.count(distinct(LocationCheckRecord.user_id)).label("user_count")
        stmt = (
            select(IncidentRecord.id, user_count)
            .select_from(IncidentRecord)
            .outerjoin(
                location_check_incidents,
                location_check_incidents.c.incident_id == IncidentRecord.id,
            )
            .outerjoin(
                LocationCheckRecord,
                (location_check_incidents.c.location_check_id == LocationCheckRecord.id)
                & (LocationCheckRecord.checked_at >= cutoff),
            )
            .where(IncidentRecord.is_active.is_(True))
            .group_by(IncidentRecord.id)
            .order_by(user_count.desc())
        )
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StorageError("incident_stats", str(e)) from e
        return [IncidentStats(zone_id=row[0], user_count=int(row[1])) for row in rows]

    # ── helpers ──

    async def _fetch(self, stmt, operation: str) -> List[Incident]:
        try:
            async with self._sessions() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as e:
            raise StorageError(operation, str(e)) from e
        return [_to_incident(row) for row in rows]

    async def _execute_affecting_one(self, stmt, operation: str, incident_id: uuid.UUID) -> None:
        try:
            async with self._sessions.begin() as session:
                result = await session.execute(stmt)
                affected = result.rowcount
        except SQLAlchemyError as e:
            raise StorageError(operation, str(e)) from e
        if affected == 0:
            raise NotFoundError("Incident", id=incident_id)
