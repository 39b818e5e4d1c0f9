"""Auth middleware -- FastAPI dependencies for the caller's identity and IP.

Identity comes from ``Authorization: Bearer <session_token>``, resolved by
the :class:`~trustgate.identity.IdentityProvider` stored on ``app.state``.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import Header, HTTPException, Request, status

from trustgate.identity import Identity

log = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Best-effort client address, honouring common proxy headers."""
    headers = request.headers
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value:
            return value.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def get_optional_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Resolve the bearer token, or return *None* for anonymous callers."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None

    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        log.warning("Bearer token presented but no identity provider is configured")
        return None
    try:
        return await provider.resolve(token)
    except (httpx.HTTPError, ValueError) as exc:
        log.error("Identity lookup failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from exc


async def get_current_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Identity:
    """FastAPI dependency requiring an authenticated, non-banned caller.

    Raises ``401 Unauthorized`` without valid credentials,
    ``403 Forbidden`` for banned accounts and ``503 Service Unavailable``
    when the auth service errors or answers with an unreadable body.
    """
    identity = await get_optional_identity(request, authorization)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if identity.is_banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been suspended",
        )
    return identity
