"""Bearer-token authentication for the dashboard API."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request, status

from ..audit import RequestOrigin
from ..config import get_settings
from ..models.enums import ActorType

__all__ = ["get_client_ip", "is_admin", "request_origin", "require_api_token"]


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP.

    Prefer ``X-Forwarded-For`` (first hop) if present, otherwise use the
    socket peer address. SlowAPI keys its limiter with this function.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def require_api_token(request: Request) -> str:
    """Validate ``Authorization: Bearer <API_TOKEN>``.

    Returns:
        str: Opaque actor id recorded in the audit trail.

    Raises:
        HTTPException: ``503`` when ``API_TOKEN`` is not configured, ``401``
            when the header is missing or does not match.
    """

    expected = get_settings().api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API_TOKEN is not configured.",
        )

    authorization = request.headers.get("Authorization")
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
        )
    scheme, _, credentials = authorization.partition(" ")
    if not credentials or scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must use Bearer scheme.",
        )
    if not hmac.compare_digest(credentials.strip().encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API token.",
        )
    return request.headers.get("X-User-Id") or "api"


def is_admin(request: Request) -> bool:
    return (request.headers.get("X-Role") or "").strip().lower() == "admin"


def request_origin(request: Request, actor_id: str | None = None) -> RequestOrigin:
    """Describe the caller of ``request`` for audit entries."""

    return RequestOrigin(
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
