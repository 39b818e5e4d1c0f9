"""Trust gateway: the full write-path check for one submission.

Order of work, cheapest first:

1. reject empty or oversized content (:class:`InvalidInputError`);
2. quota gate for the operation (IP scope, then user scope);
3. classification and harmful-content scoring, issued concurrently;
4. the decision engine.

The caller persists the content only when :attr:`GatewayResult.allowed`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from trustgate.config import GatewaySettings
from trustgate.errors import InvalidInputError
from trustgate.metrics import Metrics
from trustgate.moderation.classifier import ClassificationAdapter
from trustgate.moderation.engine import decide
from trustgate.moderation.models import (
    ClassificationResult,
    Decision,
    DomainDetection,
    ModerationScore,
)
from trustgate.moderation.scorer import ModerationScorer
from trustgate.policy import load_policy_overrides
from trustgate.quota.backends import build_backend
from trustgate.quota.gate import QuotaGate
from trustgate.quota.models import QuotaDecision
from trustgate.quota.store import QuotaStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    """Everything the gateway learned about a submission."""

    quota: QuotaDecision
    classification: Optional[ClassificationResult] = None
    score: Optional[ModerationScore] = None
    decision: Optional[Decision] = None

    @property
    def allowed(self) -> bool:
        return self.quota.allowed and self.decision is not None and not self.decision.blocked

    @property
    def degraded(self) -> bool:
        return bool(
            (self.classification and self.classification.degraded)
            or (self.score and self.score.degraded)
        )


def validate_content(content: Optional[str], max_length: int) -> str:
    """Return *content* if it is non-blank and within *max_length*."""
    if content is None or not content.strip():
        raise InvalidInputError("Content is required")
    if len(content) > max_length:
        raise InvalidInputError(
            f"Content exceeds {max_length} characters",
            {"length": len(content), "max_length": max_length},
        )
    return content


class TrustGateway:
    """Wires the quota gate, classifier, scorer and decision engine."""

    def __init__(
        self,
        gate: QuotaGate,
        classifier: ClassificationAdapter,
        scorer: ModerationScorer,
        max_content_length: int = 5000,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.gate = gate
        self.classifier = classifier
        self.scorer = scorer
        self.max_content_length = max_content_length
        self.metrics = metrics or Metrics()

    @classmethod
    def from_settings(cls, settings: GatewaySettings, metrics: Optional[Metrics] = None) -> "TrustGateway":
        """Build a gateway and its collaborators from *settings*."""
        metrics = metrics or Metrics()
        policies = load_policy_overrides(settings.policy_file) if settings.policy_file else None
        store = QuotaStore(build_backend(settings), metrics=metrics)
        return cls(
            gate=QuotaGate(store, policies=policies),
            classifier=ClassificationAdapter(
                api_key=settings.anthropic_api_key,
                model=settings.classifier_model,
                timeout=settings.service_timeout,
                metrics=metrics,
            ),
            scorer=ModerationScorer(
                api_key=settings.openai_api_key,
                url=settings.moderation_url,
                model=settings.moderation_model,
                timeout=settings.service_timeout,
                moderate_images=settings.moderate_images,
                metrics=metrics,
            ),
            max_content_length=settings.max_content_length,
            metrics=metrics,
        )

    @property
    def store(self) -> QuotaStore:
        return self.gate.store

    def close(self) -> None:
        self.store.close()

    async def evaluate(
        self,
        content: str,
        operation: str,
        identifiers: Mapping[str, Optional[str]],
        image_url: Optional[str] = None,
        domain: Optional[DomainDetection] = None,
    ) -> GatewayResult:
        """Run the full check for one submission."""
        content = validate_content(content, self.max_content_length)

        quota = await asyncio.to_thread(self.gate.check_operation, operation, identifiers)
        if not quota.allowed:
            return GatewayResult(quota=quota)

        classification, score = await asyncio.gather(
            self.classifier.classify(content),
            self.scorer.score(
                content,
                image_url=image_url,
                flagged_domain=domain is not None and domain.detected,
            ),
        )
        decision = decide(classification, score, domain)
        self.metrics.increment(f"decision.{decision.action.value}")

        result = GatewayResult(quota=quota, classification=classification, score=score, decision=decision)
        log.info(
            "Gateway operation=%s decision=%s degraded=%s warnings=%s",
            operation,
            decision.action.value,
            result.degraded,
            list(decision.warnings),
        )
        return result
