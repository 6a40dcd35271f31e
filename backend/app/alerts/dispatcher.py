"""
dispatcher.py — Detached, bounded background execution of webhook sends.

A location check must never wait on third-party webhook latency, so each
notification is submitted here and runs as its own asyncio task:

    • detached from the request — request cancellation does not reach it;
      the notifier's own deadline bounds it instead
    • bounded — at most ``max_concurrency`` sends run at once and at most
      ``max_pending`` tasks exist; beyond that, submissions are dropped
    • unobservable to callers — every outcome and every exception is
      logged here and goes no further
    • best effort — nothing is persisted; a process exit drops whatever
      is still in flight
    • fresh — with ``max_slot_wait`` set, a notification that cannot get a
      send slot within that time is dropped instead of going out late

On a DELIVERED outcome the optional ``on_delivered`` hook receives the
check id (the app wires it to LocationCheckStore.mark_webhook_sent).
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Optional, Set

from backend.app.alerts.models import DeliveryReport, WebhookPayload
from backend.app.alerts.webhook import WebhookNotifier

logger = logging.getLogger(__name__)

DeliveredHook = Callable[[uuid.UUID], Awaitable[None]]


class WebhookDispatcher:

    def __init__(
        self,
        notifier: WebhookNotifier,
        *,
        max_concurrency: int = 10,
        max_pending: int = 1000,
        on_delivered: Optional[DeliveredHook] = None,
        max_slot_wait: Optional[float] = None,
    ):
        self._notifier = notifier
        self._slots = asyncio.Semaphore(max(1, max_concurrency))
        self.max_pending = max_pending
        self._on_delivered = on_delivered
        self.max_slot_wait = max_slot_wait
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, payload: WebhookPayload) -> Optional[asyncio.Task]:
        """Schedule delivery and return immediately. None when dropped."""
        if self._closed:
            logger.warning(
                "Dispatcher closed; dropping webhook for user %s", payload.user_id,
                extra={"user_id": payload.user_id},
            )
            return None
        if len(self._tasks) >= self.max_pending:
            logger.error(
                "Webhook backlog full (%d pending); dropping notification for user %s",
                len(self._tasks), payload.user_id,
                extra={"user_id": payload.user_id},
            )
            return None

        task = asyncio.get_running_loop().create_task(
            self._run(payload),
            name=f"webhook-{payload.check_id or payload.user_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, payload: WebhookPayload) -> Optional[DeliveryReport]:
        try:
            if not await self._acquire_slot(payload):
                return None
            try:
                report = await self._notifier.send(payload)
            finally:
                self._slots.release()
            if report.delivered and self._on_delivered and payload.check_id:
                await self._report_delivery(payload.check_id)
            return report
        except asyncio.CancelledError:
            logger.warning(
                "Webhook for user %s cancelled before completion", payload.user_id,
                extra={"user_id": payload.user_id},
            )
            raise
        except Exception:
            logger.exception(
                "Webhook task crashed for user %s", payload.user_id,
                extra={"user_id": payload.user_id},
            )
            return None

    async def _acquire_slot(self, payload: WebhookPayload) -> bool:
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.max_slot_wait)
        except asyncio.TimeoutError:
            logger.warning(
                "No webhook slot for user %s within %.1fs; dropping stale notification",
                payload.user_id, self.max_slot_wait,
                extra={"user_id": payload.user_id},
            )
            return False
        return True

    async def _report_delivery(self, check_id: uuid.UUID) -> None:
        try:
            await self._on_delivered(check_id)
        except Exception as e:
            logger.warning(
                "Could not flag check %s as notified: %s", check_id, e,
                extra={"check_id": str(check_id)},
            )

    async def shutdown(self, grace_seconds: float = 5.0) -> None:
        """Stop accepting work, wait briefly for in-flight sends, cancel the rest."""
        self._closed = True
        if not self._tasks:
            return
        in_flight = set(self._tasks)
        logger.info("Waiting up to %.1fs for %d webhook task(s)", grace_seconds, len(in_flight))
        _, still_running = await asyncio.wait(in_flight, timeout=grace_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Dropped %d undelivered webhook(s) at shutdown", len(still_running))
