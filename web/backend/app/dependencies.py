"""Accessors for the per-process gateway objects held on ``app.state``."""

from __future__ import annotations

from fastapi import HTTPException, Request

from trustgate.gateway import TrustGateway
from trustgate.metrics import Metrics
from trustgate.quota.models import QuotaDecision


def get_gateway(request: Request) -> TrustGateway:
    return request.app.state.gateway


def get_metrics(request: Request) -> Metrics:
    return request.app.state.metrics


def raise_quota_exceeded(decision: QuotaDecision, message: str) -> None:
    """Raise the 429 for a rejected quota decision."""
    raise HTTPException(
        status_code=429,
        detail={
            "error": message,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "resetIn": decision.reset_in_ms,
        },
        headers={"Retry-After": str(decision.retry_after)},
    )
