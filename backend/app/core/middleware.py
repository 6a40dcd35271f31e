"""
HTTP middleware for the alert API.

Every request gets a correlation id (taken from X-Request-ID when the
caller sends one) that is bound into the log context for the lifetime
of the request and echoed back together with X-Process-Time.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import bind_request_context, reset_request_context

logger = logging.getLogger(__name__)

# Successful hits on these paths are not logged
_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/api/v1/system/health")


def _is_quiet(path: str, status_code: int) -> bool:
    return status_code < 400 and path.startswith(_QUIET_PREFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access-log record per request, tagged with its correlation id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        client_ip = request.client.host if request.client else "unknown"

        token = bind_request_context(
            request_id=request_id,
            client_ip=client_ip,
            endpoint=request.url.path,
            method=request.method,
        )
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                self._access_log(request, 500, started, client_ip)
                raise
            elapsed = self._access_log(request, response.status_code, started, client_ip)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{elapsed:.1f}ms"
            return response
        finally:
            reset_request_context(token)

    @staticmethod
    def _access_log(
        request: Request,
        status_code: int,
        started: float,
        client_ip: str,
    ) -> float:
        elapsed = (time.perf_counter() - started) * 1000
        path = request.url.path
        if _is_quiet(path, status_code):
            return elapsed

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s → %d in %.1fms [%s]",
            request.method, path, status_code, elapsed, client_ip,
            extra={"duration_ms": round(elapsed, 2), "status_code": status_code, "endpoint": path},
        )
        return elapsed
