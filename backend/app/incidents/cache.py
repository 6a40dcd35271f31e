"""
cache.py — Read-through cache of the active-incident set.

One fixed key holds the JSON list of every active incident:

    hit   → decode and return
    miss  → IncidentStore.get_active(), then best-effort repopulate (TTL)
    error → treated as a miss; Redis trouble never fails the read

Every incident mutation calls ``invalidate()``. Without an invalidation,
staleness is bounded by the TTL.
"""

from __future__ import annotations

import logging
from typing import List, Protocol

from backend.app.core.cache import CacheMiss, RedisCache
from backend.app.incidents.models import Incident
from backend.app.incidents.store import IncidentStore

logger = logging.getLogger(__name__)

ACTIVE_INCIDENTS_KEY = "active_incidents"


class CacheInvalidator(Protocol):
    """Port the incident manager uses to signal that incidents changed."""

    async def invalidate(self) -> None: ...


class ActiveIncidentCache:

    def __init__(self, cache: RedisCache, store: IncidentStore, *, ttl: int = 300):
        self._cache = cache
        self._store = store
        self.ttl = ttl

    async def get(self) -> List[Incident]:
        try:
            cached = await self._cache.get_json(ACTIVE_INCIDENTS_KEY)
            incidents = [Incident.from_dict(item) for item in cached]
        except CacheMiss:
            pass
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed active-incident cache entry: %s", e)
        else:
            logger.debug("Cache HIT: %s (%d incidents)", ACTIVE_INCIDENTS_KEY, len(incidents))
            return incidents

        incidents = await self._store.get_active()
        await self._cache.set_json(
            ACTIVE_INCIDENTS_KEY,
            [incident.to_dict() for incident in incidents],
            ttl=self.ttl,
        )
        return incidents

    async def invalidate(self) -> None:
        if await self._cache.delete(ACTIVE_INCIDENTS_KEY):
            logger.debug("Cache invalidated: %s", ACTIVE_INCIDENTS_KEY)
