"""
API key authentication.

Accepted credentials (first non-empty wins):
    Authorization: Bearer <key>
    X-API-Key: <key>

The key must equal settings.API_KEY. Missing, malformed or mismatched
credentials raise AuthError (401).
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Request

from backend.app.core.errors import AuthError


def extract_api_key(authorization: Optional[str], x_api_key: Optional[str]) -> Optional[str]:
    """
    >>> extract_api_key("Bearer abc", None)
    'abc'
    >>> extract_api_key("Basic abc", "xyz")
    'xyz'
    """
    if authorization:
        parts = authorization.split(" ")
        if len(parts) == 2 and parts[0] == "Bearer" and parts[1]:
            return parts[1]
    return x_api_key or None


def verify_api_key(presented: Optional[str], expected: str) -> None:
    if not expected or not presented:
        raise AuthError()
    if not secrets.compare_digest(presented.encode(), expected.encode()):
        raise AuthError()


async def require_api_key(request: Request) -> None:
    """FastAPI dependency guarding the protected routers."""
    container = request.app.state.container
    presented = extract_api_key(
        request.headers.get("Authorization"),
        request.headers.get("X-API-Key"),
    )
    verify_api_key(presented, container.settings.API_KEY)
