"""
Redis cache layer — async Redis client with JSON helpers.

Provides:
    • Client factory from settings
    • JSON get/set/delete helpers that never raise
    • A disabled mode (client=None) that behaves as a permanent miss

Every helper swallows Redis and (de)serialisation errors: the cache is
optional infrastructure and must never fail the request that touched it.

Usage:
    from backend.app.core.cache import RedisCache, create_redis_client

    cache = RedisCache(create_redis_client(settings), default_ttl=300)
    await cache.set_json("active_incidents", data)
    cached = await cache.get_json("active_incidents")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

from backend.app.core.config import Settings

logger = logging.getLogger(__name__)


class CacheMiss(Exception):
    """Internal marker: key absent or unreadable."""


def create_redis_client(cfg: Settings) -> Optional[aioredis.Redis]:
    """Build a lazily-connecting client; None when caching is disabled."""
    if not cfg.REDIS_ENABLED:
        logger.info("Redis disabled by configuration — caching off")
        return None
    try:
        client = aioredis.from_url(
            cfg.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    except ValueError as e:
        logger.warning("Invalid REDIS_URL %s: %s — caching off", cfg.REDIS_URL, e)
        return None
    logger.info("Redis client configured: %s", cfg.REDIS_URL.split("@")[-1])
    return client


class RedisCache:
    """Thin JSON wrapper around an async Redis client."""

    def __init__(self, client: Optional[Any], *, default_ttl: int = 300):
        self._client = client
        self.default_ttl = default_ttl

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def get_json(self, key: str) -> Any:
        """
        Return the decoded value for ``key``.

        Raises CacheMiss on absence, Redis errors or undecodable payloads.
        """
        if not self._client:
            raise CacheMiss(key)
        try:
            raw = await self._client.get(key)
        except Exception as e:
            logger.warning("Cache GET error for %s: %s", key, e)
            raise CacheMiss(key) from e
        if raw is None:
            raise CacheMiss(key)
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Cache payload for %s is not valid JSON: %s", key, e)
            raise CacheMiss(key) from e

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set a cached value with TTL (seconds). False on any failure."""
        if not self._client:
            return False
        try:
            serialised = json.dumps(value, default=str)
            await self._client.set(key, serialised, ex=ttl or self.default_ttl)
            return True
        except Exception as e:
            logger.warning("Cache SET error for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete a cache key. False on any failure."""
        if not self._client:
            return False
        try:
            await self._client.delete(key)
            return True
        except Exception as e:
            logger.warning("Cache DELETE error for %s: %s", key, e)
            return False

    async def ping(self) -> bool:
        """Connectivity probe; raises on failure (used by health checks)."""
        if not self._client:
            return False
        return bool(await self._client.ping())

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            logger.info("Redis connection closed")
