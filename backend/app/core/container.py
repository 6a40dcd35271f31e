"""
Service container — builds and owns every long-lived collaborator.

One instance lives on ``app.state.container`` for the app's lifetime:

    engine ─ sessions ─┬─ IncidentStore ──┬─ ActiveIncidentCache ─ IncidentManager
                       │                  └──────────────────────┐
                       └─ LocationCheckStore ───────────────────┴─ LocationService
    redis ─ RedisCache ─┘                                          │
    httpx ─ WebhookNotifier ─ WebhookDispatcher ───────────────────┘
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backend.app.alerts.dispatcher import WebhookDispatcher
from backend.app.alerts.webhook import RetryConfig, WebhookNotifier
from backend.app.core.cache import RedisCache, create_redis_client
from backend.app.core.config import Settings
from backend.app.core.database import (
    build_engine_from_settings,
    build_session_factory,
    close_db,
    init_db,
)
from backend.app.incidents.cache import ActiveIncidentCache
from backend.app.incidents.manager import IncidentManager
from backend.app.incidents.store import IncidentStore
from backend.app.location.check_store import LocationCheckStore
from backend.app.location.service import LocationService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    sessions: async_sessionmaker[AsyncSession]
    cache: RedisCache
    http_client: httpx.AsyncClient
    incident_store: IncidentStore
    check_store: LocationCheckStore
    active_cache: ActiveIncidentCache
    notifier: WebhookNotifier
    dispatcher: WebhookDispatcher
    incident_manager: IncidentManager
    location_service: LocationService

    @classmethod
    def build(
        cls,
        cfg: Settings,
        *,
        engine: Optional[AsyncEngine] = None,
        cache: Optional[RedisCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ServiceContainer":
        """Wire the object graph; any of the infrastructure pieces may be supplied."""
        engine = engine or build_engine_from_settings(cfg)
        sessions = build_session_factory(engine)
        cache = cache or RedisCache(create_redis_client(cfg), default_ttl=cfg.REDIS_CACHE_TTL)
        http_client = http_client or httpx.AsyncClient(
            timeout=cfg.WEBHOOK_REQUEST_TIMEOUT_SECONDS,
        )

        incident_store = IncidentStore(sessions)
        check_store = LocationCheckStore(sessions)
        active_cache = ActiveIncidentCache(cache, incident_store, ttl=cfg.REDIS_CACHE_TTL)

        notifier = WebhookNotifier(
            http_client,
            cfg.WEBHOOK_URL,
            RetryConfig.from_settings(cfg),
            request_timeout=cfg.WEBHOOK_REQUEST_TIMEOUT_SECONDS,
        )
        dispatcher = WebhookDispatcher(
            notifier,
            max_concurrency=cfg.WEBHOOK_MAX_CONCURRENCY,
            max_pending=cfg.WEBHOOK_MAX_PENDING,
            on_delivered=check_store.mark_webhook_sent,
            max_slot_wait=cfg.WEBHOOK_DEADLINE_SECONDS,
        )

        return cls(
            settings=cfg,
            engine=engine,
            sessions=sessions,
            cache=cache,
            http_client=http_client,
            incident_store=incident_store,
            check_store=check_store,
            active_cache=active_cache,
            notifier=notifier,
            dispatcher=dispatcher,
            incident_manager=IncidentManager(
                incident_store,
                active_cache,
                active_cache=active_cache,
                default_stats_window=cfg.STATS_TIME_WINDOW_MINUTES,
            ),
            location_service=LocationService(
                incident_store,
                check_store,
                dispatcher if cfg.WEBHOOK_URL else None,
            ),
        )

    async def startup(self) -> None:
        if self.settings.DATABASE_AUTO_CREATE:
            await init_db(self.engine)
        if not self.settings.API_KEY:
            logger.warning("API_KEY is not set; every protected endpoint will answer 401")
        if not self.settings.WEBHOOK_URL:
            logger.warning("WEBHOOK_URL is not set; match notifications are disabled")

    async def shutdown(self) -> None:
        await self.dispatcher.shutdown(self.settings.SHUTDOWN_GRACE_SECONDS)
        await self.http_client.aclose()
        await self.cache.close()
        await close_db(self.engine)
