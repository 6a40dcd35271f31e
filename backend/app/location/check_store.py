"""
check_store.py — Persistence for location checks and their incident links.

``link_to_incidents`` issues one multi-row ``INSERT … ON CONFLICT DO
NOTHING`` inside a single transaction: every pair lands or none does,
and re-linking an existing pair is silently ignored.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.errors import NotFoundError, StorageError
from backend.app.incidents.models import LocationCheck, utcnow
from backend.app.incidents.records import LocationCheckRecord, location_check_incidents

logger = logging.getLogger(__name__)

# Dialect-specific INSERT constructs that support ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class LocationCheckStore:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def create(self, check: LocationCheck) -> LocationCheck:
        check.id = uuid.uuid4()
        check.checked_at = utcnow()
        check.webhook_sent = False
        try:
            async with self._sessions.begin() as session:
                session.add(LocationCheckRecord(
                    id=check.id,
                    user_id=check.user_id,
                    latitude=check.latitude,
                    longitude=check.longitude,
                    checked_at=check.checked_at,
                    webhook_sent=check.webhook_sent,
                ))
        except SQLAlchemyError as e:
            raise StorageError("create_location_check", str(e)) from e
        return check

    async def link_to_incidents(
        self,
        check_id: uuid.UUID,
        incident_ids: Iterable[uuid.UUID],
    ) -> int:
        """
        Link a check to the incidents it matched.

        Returns the number of distinct pairs submitted; 0 for empty input,
        in which case nothing touches the database.
        """
        unique_ids = list(dict.fromkeys(incident_ids))
        if not unique_ids:
            return 0

        rows = [
            {"location_check_id": check_id, "incident_id": incident_id}
            for incident_id in unique_ids
        ]
        try:
            async with self._sessions.begin() as session:
                stmt = self._insert_ignoring_duplicates(session, rows)
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(
                "link_location_check", str(e),
                check_id=str(check_id), incident_count=len(unique_ids),
            ) from e
        return len(unique_ids)

    async def mark_webhook_sent(self, check_id: uuid.UUID) -> None:
        stmt = (
            update(LocationCheckRecord)
            .where(LocationCheckRecord.id == check_id)
            .values(webhook_sent=True)
        )
        try:
            async with self._sessions.begin() as session:
                result = await session.execute(stmt)
                affected = result.rowcount
        except SQLAlchemyError as e:
            raise StorageError("mark_webhook_sent", str(e), check_id=str(check_id)) from e
        if affected == 0:
            raise NotFoundError("LocationCheck", id=check_id)

    async def get(self, check_id: uuid.UUID) -> LocationCheck:
        try:
            async with self._sessions() as session:
                row = await session.get(LocationCheckRecord, check_id)
        except SQLAlchemyError as e:
            raise StorageError("get_location_check", str(e)) from e
        if row is None:
            raise NotFoundError("LocationCheck", id=check_id)
        return LocationCheck(
            id=row.id,
            user_id=row.user_id,
            latitude=row.latitude,
            longitude=row.longitude,
            checked_at=row.checked_at,
            webhook_sent=row.webhook_sent,
        )

    async def get_linked_incident_ids(self, check_id: uuid.UUID) -> List[uuid.UUID]:
        """Incident ids a check matched; unaffected by later soft deletes."""
        stmt = select(location_check_incidents.c.incident_id).where(
            location_check_incidents.c.location_check_id == check_id
        )
        try:
            async with self._sessions() as session:
                return list((await session.scalars(stmt)).all())
        except SQLAlchemyError as e:
            raise StorageError("get_check_links", str(e)) from e

    @staticmethod
    def _insert_ignoring_duplicates(session: AsyncSession, rows: List[dict]):
        dialect = session.bind.dialect.name
        insert_fn = _UPSERT_INSERTS.get(dialect)
        if insert_fn is None:
            raise StorageError(
                "link_location_check",
                f"dialect '{dialect}' has no ON CONFLICT support",
            )
        return insert_fn(location_check_incidents).values(rows).on_conflict_do_nothing()
