"""Content analysis router -- semantic classification of a draft post.

The classifier is an external, metered service, so this endpoint carries its
own quota independent of the submission quotas.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from trustgate.gateway import TrustGateway, validate_content
from trustgate.identity import Identity
from web.backend.app.dependencies import get_gateway, raise_quota_exceeded
from web.backend.app.middleware.auth import get_client_ip, get_current_identity
from web.backend.app.models.api import ContentAnalyzeRequest, ContentAnalyzeResponse

router = APIRouter(prefix="/api/content", tags=["content"])


@router.post("/analyze", response_model=ContentAnalyzeResponse)
async def analyze_content(
    req: ContentAnalyzeRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gateway: TrustGateway = Depends(get_gateway),
):
    """Classify sentiment, tags and domain policy signals for *content*."""
    content = validate_content(req.content, gateway.max_content_length)

    decision = await run_in_threadpool(
        gateway.gate.check_operation,
        "content_analysis",
        {"ip": get_client_ip(request), "user": identity.user_id},
    )
    if not decision.allowed:
        raise_quota_exceeded(
            decision, "Rate limit exceeded. Please wait a moment before analyzing again."
        )

    result = await gateway.classifier.classify(content)
    return ContentAnalyzeResponse.from_result(result)
