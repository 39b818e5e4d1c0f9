"""Data models for the moderation decision pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Sentiment(str, Enum):
    """Closed sentiment vocabulary returned by the classification adapter."""

    positive = "positive"
    negative = "negative"
    neutral = "neutral"
    question = "question"
    educational = "educational"
    transformation = "transformation"


class Category(str, Enum):
    """Harmful-content categories scored by the moderation scorer."""

    sexual = "sexual"
    hate = "hate"
    harassment = "harassment"
    violence = "violence"
    self_harm = "self_harm"
    graphic_violence = "graphic_violence"
    sexual_minors = "sexual_minors"


class Severity(str, Enum):
    """Severity of a domain-detector match."""

    none = "none"
    low = "low"
    medium = "medium"
    high = "high"


class DecisionAction(str, Enum):
    allow = "allow"
    content_warning = "content_warning"
    block = "block"


@dataclass(frozen=True)
class ClassificationResult:
    """Output of the classification adapter."""

    sentiment: Sentiment
    tags: frozenset[str] = frozenset()
    is_flagged_domain: bool = False
    flagged_reason: Optional[str] = None
    recommended_block: bool = False
    reasoning: str = ""
    degraded: bool = False


def _all_false() -> dict[Category, bool]:
    return {c: False for c in Category}


def _all_zero() -> dict[Category, float]:
    return {c: 0.0 for c in Category}


@dataclass(frozen=True)
class ModerationScore:
    """Per-category flags and scores.  Always total over :class:`Category`."""

    categories: dict[Category, bool] = field(default_factory=_all_false)
    category_scores: dict[Category, float] = field(default_factory=_all_zero)
    degraded: bool = False

    @classmethod
    def neutral(cls, degraded: bool = True) -> "ModerationScore":
        """All categories false, all scores zero."""
        return cls(degraded=degraded)

    @property
    def flagged(self) -> bool:
        return any(self.categories.values())

    def is_set(self, category: Category) -> bool:
        return self.categories.get(category, False)


@dataclass(frozen=True)
class DomainDetection:
    """Caller-supplied domain policy signal."""

    detected: bool = False
    severity: Severity = Severity.none
    matches: tuple[str, ...] = ()


@dataclass(frozen=True)
class Decision:
    """Final verdict for a submission."""

    action: DecisionAction
    warnings: tuple[str, ...] = ()
    reasoning: str = ""

    @property
    def blocked(self) -> bool:
        return self.action is DecisionAction.block
