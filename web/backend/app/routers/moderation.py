"""Moderation router -- harmful-content scoring plus the decision policy."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from trustgate.gateway import TrustGateway, validate_content
from trustgate.identity import Identity
from trustgate.moderation.domain import detect_domain_content
from trustgate.moderation.engine import decide
from trustgate.moderation.models import ClassificationResult, Sentiment
from web.backend.app.dependencies import get_gateway, raise_quota_exceeded
from web.backend.app.middleware.auth import get_client_ip, get_current_identity
from web.backend.app.models.api import ModerationCheckRequest, ModerationCheckResponse

router = APIRouter(prefix="/api/moderation", tags=["moderation"])

# The check endpoint scores content only; no semantic classification runs.
_UNCLASSIFIED = ClassificationResult(sentiment=Sentiment.neutral)


@router.post("/check", response_model=ModerationCheckResponse)
async def check_content(
    req: ModerationCheckRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gateway: TrustGateway = Depends(get_gateway),
):
    """Score *content* and recommend allow, content_warning or block.

    When the caller sends no ``domainDetection`` the platform detector runs
    locally.
    """
    content = validate_content(req.content, gateway.max_content_length)

    decision = await run_in_threadpool(
        gateway.gate.check_operation,
        "moderation_check",
        {"ip": get_client_ip(request), "user": identity.user_id},
    )
    if not decision.allowed:
        raise_quota_exceeded(decision, "Too many requests. Please try again later.")

    domain = (
        req.domain_detection.to_domain()
        if req.domain_detection is not None
        else detect_domain_content(content)
    )
    score = await gateway.scorer.score(
        content, image_url=req.image_url, flagged_domain=domain.detected
    )
    verdict = decide(_UNCLASSIFIED, score, domain)
    return ModerationCheckResponse.from_score(score, verdict, domain)
