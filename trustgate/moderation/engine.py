"""Decision engine: fuses classification, moderation and domain signals.

:func:`decide` is pure and total so it can be tested without either
external service.  Rules are evaluated in order and the first match wins:

1. a blocking category (sexual/minors, self-harm, graphic violence) blocks;
2. a medium or high domain severity blocks;
3. any other flagged category, a low domain severity or a classifier block
   recommendation yields a content warning;
4. everything else is allowed.
"""

from __future__ import annotations

from typing import Optional

from trustgate.moderation.models import (
    Category,
    ClassificationResult,
    Decision,
    DecisionAction,
    DomainDetection,
    ModerationScore,
    Severity,
)
from trustgate.policy import (
    BLOCKING_CATEGORIES,
    CATEGORY_LABELS,
    CATEGORY_ORDER,
    DOMAIN_WARNING_LABEL,
)

_BLOCKING_DOMAIN = frozenset({Severity.medium, Severity.high})


def _labels(score: ModerationScore, categories: tuple[Category, ...]) -> list[str]:
    return [CATEGORY_LABELS[c] for c in categories if score.is_set(c)]


def decide(
    classification: ClassificationResult,
    score: ModerationScore,
    domain: Optional[DomainDetection] = None,
) -> Decision:
    """Return the verdict for one submission."""
    severity = domain.severity if domain is not None else Severity.none

    # 1. Categories that are never acceptable.
    blocking = tuple(c for c in Category if c in BLOCKING_CATEGORIES and score.is_set(c))
    if blocking:
        return Decision(
            action=DecisionAction.block,
            warnings=tuple(_labels(score, blocking)),
            reasoning="Blocked: " + ", ".join(c.value for c in blocking),
        )

    # 2. Strong domain policy violation.
    if severity in _BLOCKING_DOMAIN:
        return Decision(
            action=DecisionAction.block,
            warnings=(DOMAIN_WARNING_LABEL,),
            reasoning=f"Blocked: domain detector severity {severity.value}",
        )

    # 3. Anything else flagged becomes a warning.  Moderation and domain
    # warnings are a union; neither suppresses the other.
    warnings = _labels(score, CATEGORY_ORDER)
    reasons = []
    if warnings:
        reasons.append("moderation categories flagged")
    if severity is Severity.low:
        reasons.append("domain detector severity low")
    if classification.recommended_block:
        reasons.append(
            f"classifier recommended block ({classification.flagged_reason})"
            if classification.flagged_reason
            else "classifier recommended block"
        )
    if severity is Severity.low or classification.recommended_block:
        warnings.append(DOMAIN_WARNING_LABEL)

    if reasons:
        return Decision(
            action=DecisionAction.content_warning,
            warnings=tuple(warnings),
            reasoning="Content warning: " + "; ".join(reasons),
        )

    return Decision(action=DecisionAction.allow, reasoning="No signals raised")


def warning_message(warnings: list[str] | tuple[str, ...]) -> str:
    """Render warnings as one sentence, e.g. "This content may contain a and b."."""
    if not warnings:
        return ""
    if len(warnings) == 1:
        return f"This content may contain {warnings[0]}."
    return f"This content may contain {', '.join(warnings[:-1])} and {warnings[-1]}."
