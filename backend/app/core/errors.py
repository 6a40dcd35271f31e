"""
Error types of the alert service and their HTTP mapping.

Every domain failure derives from ``GeoAlertError`` and carries its own
status and machine code as class attributes, so handlers only need one
code path. All error bodies share one envelope:

    {"error": {"code": "NOT_FOUND", "message": "...", "status": 404,
               "details": {...}}}

Usage:
    from backend.app.core.errors import NotFoundError, register_error_handlers

    raise NotFoundError("Incident", id=incident_id)
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import Settings, settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class GeoAlertError(Exception):
    """Base class; subclasses override ``status_code`` and ``error_code``."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str = "An unexpected error occurred", **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}


class NotFoundError(GeoAlertError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            f"{resource} not found",
            resource=resource,
            **{k: str(v) for k, v in identifiers.items()},
        )


class ValidationError(GeoAlertError):
    """Rejected input; ``field`` names the offending attribute when known."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        super().__init__(message, field=field, **details)


class InvalidCoordinatesError(ValidationError):
    """Latitude outside [-90, 90] or longitude outside [-180, 180]."""

    error_code = "INVALID_COORDINATES"


class InvalidRadiusError(ValidationError):
    """Zone radius is not a positive, finite number of meters."""

    error_code = "INVALID_RADIUS"


class StorageError(GeoAlertError):
    error_code = "STORAGE_ERROR"

    def __init__(self, operation: str, message: str = "", **details: Any):
        super().__init__(
            f"Storage operation '{operation}' failed: {message}",
            operation=operation,
            **details,
        )


class AuthError(GeoAlertError):
    status_code = 401
    error_code = "UNAUTHORIZED"
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(message)


class WebhookDeliveryError(GeoAlertError):
    """
    A webhook attempt got a non-2xx answer.

    Only the notifier raises and catches this; it never reaches an
    HTTP caller.
    """

    status_code = 502
    error_code = "WEBHOOK_DELIVERY_ERROR"

    def __init__(self, url: str, status: int, body: str = ""):
        super().__init__(
            f"Webhook {url} returned status {status}: {body[:200]}",
            url=url,
            response_status=status,
        )
        self.response_status = status


# ═══════════════════════════════════════════════════════════════════════════
# Response envelope
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    *,
    show_request: bool = False,
) -> JSONResponse:
    error: Dict[str, Any] = {"code": error_code, "message": message, "status": status_code}
    if details:
        error["details"] = details
    if show_request:
        error["path"] = request.url.path
        error["method"] = request.method
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    # Drop the leading "body"/"query" segment from pydantic locations
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI, cfg: Optional[Settings] = None) -> None:
    """Map domain errors, request validation and stray exceptions to JSON."""
    cfg = cfg or settings
    show_request = not cfg.is_production

    @app.exception_handler(GeoAlertError)
    async def handle_geo_alert_error(request: Request, exc: GeoAlertError):
        logger.log(
            logging.ERROR if exc.status_code >= 500 else logging.WARNING,
            "%s: %s %s",
            exc.error_code, exc.message, exc.details or "",
        )
        return _build_error_response(
            request, exc.status_code, exc.error_code, exc.message, exc.details, exc.headers,
            show_request=show_request,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, errors)
        return _build_error_response(
            request, 400, ValidationError.error_code, "Invalid request", {"errors": errors},
            show_request=show_request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        trace = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.critical("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, "".join(trace))
        if cfg.DEBUG:
            return _build_error_response(
                request, 500, GeoAlertError.error_code, str(exc), {"traceback": trace},
                show_request=show_request,
            )
        return _build_error_response(
            request, 500, GeoAlertError.error_code, "Internal server error",
            show_request=show_request,
        )
