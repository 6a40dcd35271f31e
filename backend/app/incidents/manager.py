"""
manager.py — Incident lifecycle: validation, mutation, cache invalidation.

Every mutation goes through here so that the invariants (radius > 0,
coordinates in range) and the cache invalidation are never skipped.
The cache is reached through the CacheInvalidator port only.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from backend.app.incidents.cache import ActiveIncidentCache, CacheInvalidator
from backend.app.incidents.models import (
    Incident,
    IncidentPatch,
    IncidentStats,
    validate_coordinates,
    validate_radius,
)
from backend.app.incidents.store import IncidentStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
# Keeps OFFSET inside a 32-bit integer on every backend
MAX_PAGE = (2**31 - 1) // MAX_PAGE_SIZE


def normalize_pagination(page: int, page_size: int) -> Tuple[int, int]:
    """
    Clamp paging input.

    >>> normalize_pagination(0, 500)
    (1, 20)
    >>> normalize_pagination(3, 50)
    (3, 50)
    >>> normalize_pagination(10**19, 20)
    (21474836, 20)
    """
    page = min(max(page, 1), MAX_PAGE)
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


class IncidentManager:

    def __init__(
        self,
        store: IncidentStore,
        invalidator: CacheInvalidator,
        *,
        active_cache: Optional[ActiveIncidentCache] = None,
        default_stats_window: int = 60,
    ):
        self._store = store
        self._invalidator = invalidator
        self._active_cache = active_cache
        self.default_stats_window = default_stats_window

    async def create_incident(
        self,
        title: str,
        latitude: float,
        longitude: float,
        radius: float,
        description: str = "",
    ) -> Incident:
        validate_coordinates(latitude, longitude)
        validate_radius(radius)

        incident = await self._store.create(Incident(
            title=title,
            description=description,
            latitude=latitude,
            longitude=longitude,
            radius=radius,
            is_active=True,
        ))
        await self._invalidator.invalidate()
        return incident

    async def get_incident(self, incident_id: uuid.UUID) -> Incident:
        return await self._store.get_by_id(incident_id)

    async def get_all_incidents(self, page: int, page_size: int) -> List[Incident]:
        page, page_size = normalize_pagination(page, page_size)
        offset = (page - 1) * page_size
        return await self._store.get_all(page_size, offset)

    async def update_incident(self, incident_id: uuid.UUID, patch: IncidentPatch) -> Incident:
        current = await self._store.get_by_id(incident_id)
        updated = patch.apply_to(current)

        # Only re-check what the caller actually touched
        if patch.touches_coordinates:
            validate_coordinates(updated.latitude, updated.longitude)
        if patch.touches_radius:
            validate_radius(updated.radius)

        updated = await self._store.update(incident_id, updated)
        await self._invalidator.invalidate()
        logger.info(
            "Incident %s updated: %s", incident_id, sorted(patch.supplied()),
            extra={"incident_id": str(incident_id)},
        )
        return updated

    async def delete_incident(self, incident_id: uuid.UUID) -> None:
        await self._store.delete(incident_id)
        await self._invalidator.invalidate()

    async def list_active_incidents(self) -> List[Incident]:
        """Active set, served through the read-through cache when wired."""
        if self._active_cache is not None:
            return await self._active_cache.get()
        return await self._store.get_active()

    async def get_stats(self, minutes: Optional[int] = None) -> List[IncidentStats]:
        if not minutes or minutes <= 0:
            minutes = self.default_stats_window
        return await self._store.get_stats(minutes)
