"""Pydantic models for API request/response serialization.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from trustgate.moderation.models import (
    ClassificationResult,
    Decision,
    DomainDetection,
    ModerationScore,
    Severity,
)
from trustgate.quota.models import QuotaDecision


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Quota models
# ---------------------------------------------------------------------------


class QuotaCheckRequest(_ApiModel):
    identifier: str = Field(min_length=1, max_length=255)
    action: str = Field(min_length=1, max_length=100)
    limit: int = Field(ge=1)
    window_seconds: int = Field(ge=1, alias="windowSeconds")


class QuotaCheckResponse(_ApiModel):
    """Mirrors trustgate.quota.models.QuotaDecision."""

    allowed: bool
    limit: int
    current: int
    remaining: int
    reset_in: int = Field(alias="resetIn", description="Milliseconds until the window resets")

    @classmethod
    def from_decision(cls, decision: QuotaDecision) -> "QuotaCheckResponse":
        return cls(
            allowed=decision.allowed,
            limit=decision.limit,
            current=decision.current,
            remaining=decision.remaining,
            reset_in=decision.reset_in_ms,
        )


# ---------------------------------------------------------------------------
# Classification models
# ---------------------------------------------------------------------------


class ContentAnalyzeRequest(_ApiModel):
    content: str


class ContentAnalyzeResponse(_ApiModel):
    """Mirrors trustgate.moderation.models.ClassificationResult."""

    sentiment: str
    tags: list[str] = Field(default_factory=list)
    is_flagged_domain: bool = Field(False, alias="isFlaggedDomain")
    flagged_reason: Optional[str] = Field(None, alias="flaggedReason")
    recommended_block: bool = Field(False, alias="recommendedBlock")
    reasoning: str = ""
    degraded: bool = False

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ContentAnalyzeResponse":
        return cls(
            sentiment=result.sentiment.value,
            tags=sorted(result.tags),
            is_flagged_domain=result.is_flagged_domain,
            flagged_reason=result.flagged_reason,
            recommended_block=result.recommended_block,
            reasoning=result.reasoning,
            degraded=result.degraded,
        )


# ---------------------------------------------------------------------------
# Moderation models
# ---------------------------------------------------------------------------


class DomainDetectionModel(_ApiModel):
    detected: bool = False
    severity: Severity = Severity.none
    matches: list[str] = Field(default_factory=list)

    def to_domain(self) -> DomainDetection:
        return DomainDetection(
            detected=self.detected,
            severity=self.severity,
            matches=tuple(self.matches),
        )


class ModerationCheckRequest(_ApiModel):
    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    domain_detection: Optional[DomainDetectionModel] = Field(None, alias="domainDetection")


class ModerationCheckResponse(_ApiModel):
    flagged: bool
    warnings: list[str] = Field(default_factory=list)
    categories: dict[str, bool] = Field(default_factory=dict)
    category_scores: dict[str, float] = Field(default_factory=dict, alias="categoryScores")
    recommendation: Literal["allow", "content_warning", "block"]
    degraded: bool = False

    @classmethod
    def from_score(
        cls,
        score: ModerationScore,
        decision: Decision,
        domain: Optional[DomainDetection],
    ) -> "ModerationCheckResponse":
        return cls(
            flagged=score.flagged or bool(domain and domain.detected),
            warnings=list(decision.warnings),
            categories={c.value: v for c, v in score.categories.items()},
            category_scores={c.value: s for c, s in score.category_scores.items()},
            recommendation=decision.action.value,
            degraded=score.degraded,
        )


# ---------------------------------------------------------------------------
# Submission models
# ---------------------------------------------------------------------------


class SubmissionRequest(_ApiModel):
    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")


class SubmissionResponse(_ApiModel):
    allowed: bool
    decision: Literal["allow", "content_warning", "block"]
    warnings: list[str] = Field(default_factory=list)
    message: str = ""
    quota: QuotaCheckResponse


# ---------------------------------------------------------------------------
# Meta models
# ---------------------------------------------------------------------------


class MetricsResponse(_ApiModel):
    counters: dict[str, int] = Field(default_factory=dict)
