"""
service.py — Location check orchestration.

    ┌──────────────────────┐
    │ 1. Validate input    │  user_id present, lat/lon in range
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 2. Proximity lookup  │  IncidentStore.find_nearby (authoritative,
    └─────────┬────────────┘  never the cache)
              ▼
    ┌──────────────────────┐
    │ 3. Persist check     │  failure → StorageError, request aborts
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 4. Link matches      │  failure → logged and swallowed
    └─────────┬────────────┘
              ▼
    ┌──────────────────────┐
    │ 5. Dispatch webhook  │  detached task; not awaited
    └─────────┬────────────┘
              ▼
         has_danger + matched incidents

Steps 3 → 4 → 5 are strictly ordered within one request. Checks from
different requests share nothing and take no locks.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.app.alerts.dispatcher import WebhookDispatcher
from backend.app.alerts.models import WebhookPayload
from backend.app.core.errors import StorageError, ValidationError
from backend.app.incidents.models import LocationCheck, LocationCheckResult, validate_coordinates
from backend.app.incidents.store import IncidentStore
from backend.app.location.check_store import LocationCheckStore

logger = logging.getLogger(__name__)


class LocationService:

    def __init__(
        self,
        incident_store: IncidentStore,
        check_store: LocationCheckStore,
        dispatcher: Optional[WebhookDispatcher] = None,
    ):
        self._incidents = incident_store
        self._checks = check_store
        self._dispatcher = dispatcher

    async def check_location(
        self,
        user_id: str,
        latitude: float,
        longitude: float,
    ) -> LocationCheckResult:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", field="user_id")
        validate_coordinates(latitude, longitude)

        matches = await self._incidents.find_nearby(latitude, longitude)

        check = await self._checks.create(LocationCheck(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
        ))

        if matches:
            try:
                await self._checks.link_to_incidents(check.id, [i.id for i in matches])
            except StorageError as e:
                # The proximity answer is already computed and still valid
                logger.error(
                    "Failed to link check %s to %d incident(s): %s",
                    check.id, len(matches), e.message,
                    extra={"check_id": str(check.id), "user_id": user_id},
                )
            self._dispatch(WebhookPayload.for_check(check, matches))

        logger.info(
            "Location check %s for user %s: %d match(es)",
            check.id, user_id, len(matches),
            extra={
                "check_id": str(check.id),
                "user_id": user_id,
                "match_count": len(matches),
            },
        )
        return LocationCheckResult(incidents=matches, check_id=check.id)

    def _dispatch(self, payload: WebhookPayload) -> None:
        if self._dispatcher is None:
            logger.debug("No webhook dispatcher configured; skipping notification")
            return
        self._dispatcher.submit(payload)
