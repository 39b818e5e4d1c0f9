"""Submissions router -- the full trust gateway in front of content writes.

Persistence happens in the caller after a 200; this router only decides.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from trustgate.gateway import TrustGateway, validate_content
from trustgate.identity import Identity
from trustgate.moderation.domain import detect_domain_content
from trustgate.moderation.engine import warning_message
from web.backend.app.dependencies import get_gateway, raise_quota_exceeded
from web.backend.app.middleware.auth import get_client_ip, get_current_identity
from web.backend.app.models.api import QuotaCheckResponse, SubmissionRequest, SubmissionResponse

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/submissions", tags=["submissions"])

_BLOCK_MESSAGE = "This content violates our community guidelines and cannot be posted."


@router.post("/{operation}", response_model=SubmissionResponse)
async def submit(
    operation: str,
    req: SubmissionRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    gateway: TrustGateway = Depends(get_gateway),
):
    """Run quota, classification, scoring and the decision for a write.

    * 429 with ``Retry-After`` when a quota is spent
    * 422 with the policy message when the content is blocked
    * 200 with ``allow`` or ``content_warning`` otherwise
    """
    if operation not in gateway.gate.operations:
        raise HTTPException(status_code=404, detail=f"Unknown operation: {operation}")

    content = validate_content(req.content, gateway.max_content_length)
    result = await gateway.evaluate(
        content,
        operation,
        {"ip": get_client_ip(request), "user": identity.user_id},
        image_url=req.image_url,
        domain=detect_domain_content(content),
    )
    if not result.quota.allowed:
        raise_quota_exceeded(result.quota, "Too many requests. Please try again later.")

    decision = result.decision
    if decision.blocked:
        log.info("Blocked %s from user %s: %s", operation, identity.user_id, decision.reasoning)
        raise HTTPException(
            status_code=422,
            detail={"error": _BLOCK_MESSAGE, "warnings": list(decision.warnings)},
        )

    return SubmissionResponse(
        allowed=True,
        decision=decision.action.value,
        warnings=list(decision.warnings),
        message=warning_message(decision.warnings),
        quota=QuotaCheckResponse.from_decision(result.quota),
    )
