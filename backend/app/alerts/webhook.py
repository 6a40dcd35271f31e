"""
webhook.py — Outbound webhook delivery with bounded exponential backoff.

═══════════════════════════════════════════════════════════════════════════
RETRY STRATEGY
═══════════════════════════════════════════════════════════════════════════

    max_attempts   N (default 3)
    backoff        delay before attempt k+1 = base × 2^(k-1)
    deadline       one budget for the whole sequence (default 30 s)

    Example (base = 5 s, N = 3):
        attempt 1 → fail → wait 5 s → attempt 2 → fail → wait 10 s → attempt 3

An attempt fails on a transport error or any non-2xx answer. When the
deadline elapses — mid-request or mid-wait — the sequence stops at once
and reports TIMED_OUT. Exhausting the attempts reports FAILED.

Outcomes are returned and logged, never raised: the caller that
triggered the notification has already received its response.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from backend.app.alerts.models import DeliveryReport, DeliveryStatus, WebhookPayload
from backend.app.core.config import Settings
from backend.app.core.errors import WebhookDeliveryError

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_seconds: float = 5.0
    deadline_seconds: float = 30.0

    @classmethod
    def from_settings(cls, cfg: Settings) -> "RetryConfig":
        return cls(
            max_attempts=max(1, cfg.WEBHOOK_RETRY_ATTEMPTS),
            base_delay_seconds=cfg.WEBHOOK_RETRY_DELAY_SECONDS,
            deadline_seconds=cfg.WEBHOOK_DEADLINE_SECONDS,
        )


def compute_backoff(config: RetryConfig, failed_attempt: int) -> float:
    """
    Delay after the ``failed_attempt``-th (1-based) failure.

    >>> compute_backoff(RetryConfig(base_delay_seconds=5.0), 1)
    5.0
    >>> compute_backoff(RetryConfig(base_delay_seconds=5.0), 3)
    20.0
    """
    return config.base_delay_seconds * (2 ** (failed_attempt - 1))


class WebhookNotifier:
    """
    Sends match notifications to a single configured URL.

    Usage:
        notifier = WebhookNotifier(client, "https://hooks.example/geo", RetryConfig())
        report = await notifier.send(payload)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        config: Optional[RetryConfig] = None,
        *,
        request_timeout: float = 10.0,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._client = client
        self.url = url
        self.config = config or RetryConfig()
        self.request_timeout = request_timeout
        self._sleep = sleep

    async def send(self, payload: WebhookPayload) -> DeliveryReport:
        report = DeliveryReport()
        started = time.monotonic()
        try:
            await asyncio.wait_for(
                self._attempt_all(payload, report),
                timeout=self.config.deadline_seconds,
            )
        except asyncio.TimeoutError:
            report.status = DeliveryStatus.TIMED_OUT
        report.elapsed_seconds = time.monotonic() - started

        self._log_outcome(payload, report)
        return report

    async def _attempt_all(self, payload: WebhookPayload, report: DeliveryReport) -> None:
        body = payload.to_dict()
        for attempt in range(1, self.config.max_attempts + 1):
            if attempt > 1:
                delay = compute_backoff(self.config, attempt - 1)
                report.delays.append(delay)
                logger.debug(
                    "Retrying webhook in %.1fs (attempt %d/%d)",
                    delay, attempt, self.config.max_attempts,
                    extra={"delay_s": delay, "attempt": attempt},
                )
                await self._sleep(delay)

            report.attempts = attempt
            try:
                await self._post(body)
            except (httpx.HTTPError, WebhookDeliveryError) as e:
                report.last_error = str(e) or type(e).__name__
                logger.warning(
                    "Webhook attempt %d/%d failed: %s",
                    attempt, self.config.max_attempts, report.last_error,
                    extra={"attempt": attempt, "user_id": payload.user_id},
                )
                continue

            report.status = DeliveryStatus.DELIVERED
            return

        report.status = DeliveryStatus.FAILED

    async def _post(self, body: dict) -> None:
        response = await self._client.post(
            self.url,
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=self.request_timeout,
        )
        if not response.is_success:
            raise WebhookDeliveryError(self.url, response.status_code, response.text)

    def _log_outcome(self, payload: WebhookPayload, report: DeliveryReport) -> None:
        extra = {
            "user_id": payload.user_id,
            "check_id": str(payload.check_id) if payload.check_id else None,
            "attempt": report.attempts,
            "delivery_status": report.status.value,
            "webhook_url": self.url,
        }
        if report.delivered:
            logger.info(
                "Webhook delivered for user %s after %d attempt(s) (%.2fs)",
                payload.user_id, report.attempts, report.elapsed_seconds,
                extra=extra,
            )
        elif report.status == DeliveryStatus.TIMED_OUT:
            logger.error(
                "Webhook timed out for user %s after %d attempt(s): deadline %.1fs",
                payload.user_id, report.attempts, self.config.deadline_seconds,
                extra=extra,
            )
        else:
            logger.error(
                "Webhook failed for user %s after %d attempts: %s",
                payload.user_id, report.attempts, report.last_error,
                extra=extra,
            )
