"""Quota router -- internal quota check surfaced over HTTP."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from trustgate.gateway import TrustGateway
from trustgate.identity import Identity
from web.backend.app.dependencies import get_gateway, raise_quota_exceeded
from web.backend.app.middleware.auth import get_current_identity
from web.backend.app.models.api import QuotaCheckRequest, QuotaCheckResponse

router = APIRouter(prefix="/api/quota", tags=["quota"])


@router.post("/check", response_model=QuotaCheckResponse)
async def check_quota(
    req: QuotaCheckRequest,
    identity: Identity = Depends(get_current_identity),
    gateway: TrustGateway = Depends(get_gateway),
):
    """Count one request against ``(identifier, action)``.

    Returns 429 with ``Retry-After`` once the window's limit is spent.
    """
    decision = await run_in_threadpool(
        gateway.store.check_and_increment,
        req.identifier,
        req.action,
        req.limit,
        req.window_seconds,
    )
    if not decision.allowed:
        raise_quota_exceeded(decision, "Too many requests. Please try again later.")
    return QuotaCheckResponse.from_decision(decision)
