"""Classification adapter around the external semantic classifier.

The classifier (an Anthropic model) is nondeterministic, so it is only asked
for raw signals.  The adapter validates them into closed types and applies a
fixed three-tier precedence:

1. A transformation narrative ("I used to X, but now I Y") is always
   allowed, whatever negative terms appear in its past-tense part.
2. Present-tense promotion of the disfavored category is flagged.
3. Present-tense hostility toward any group is flagged, unless the content
   is educational or a genuine question.

Each tier only applies once the tiers above it are ruled out.

When the classifier is not configured or fails, a local heuristic takes over.
It can only label sentiment and never recommends a block.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Any, Optional

import anthropic
from pydantic import BaseModel, Field, ValidationError, field_validator

from trustgate.config import DEFAULT_CLASSIFIER_MODEL
from trustgate.errors import ConfigurationError, TransientServiceError
from trustgate.metrics import Metrics
from trustgate.moderation.domain import is_transformation_narrative
from trustgate.moderation.models import ClassificationResult, Sentiment
from trustgate.moderation.prompts import CLASSIFIER_SYSTEM_PROMPT, CLASSIFIER_USER_PROMPT

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Local patterns
# ---------------------------------------------------------------------------

_INTERROGATIVE = re.compile(r"\?|\b(how|what|why|where|which)\b", re.IGNORECASE)
_POSITIVE_WORDS = re.compile(r"\b(love|amazing|great|awesome|happy|delicious)\b", re.IGNORECASE)

_SENTIMENT_ALIASES = {"celebration": "positive"}


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------


class ClassifierSignals(BaseModel):
    """Raw classifier output, validated before any policy is applied."""

    sentiment: Sentiment
    tags: list[str] = Field(default_factory=list)
    transformation_narrative: bool = False
    promotes_disfavored: bool = False
    present_hostility: bool = False
    educational: bool = False
    question: bool = False
    flagged_reason: Optional[str] = None
    reasoning: str = ""

    @field_validator("sentiment", mode="before")
    @classmethod
    def _normalise_sentiment(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return _SENTIMENT_ALIASES.get(value, value)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        return value


def parse_signals(content: str) -> ClassifierSignals:
    """Parse a JSON reply, tolerating markdown fences around it."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[: content.rfind("```")]
    return ClassifierSignals.model_validate(json.loads(content.strip()))


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


def apply_precedence(signals: ClassifierSignals, text: str) -> ClassificationResult:
    """Turn classifier signals into a result using the fixed tier order."""
    tags = frozenset(t.strip().lower() for t in signals.tags if t and t.strip())

    # Tier 1: transformation narratives are never flagged.  The local
    # detector only vouches for the domain clause, not for hostility.
    local_narrative = is_transformation_narrative(text) and not signals.present_hostility
    if signals.transformation_narrative or local_narrative:
        sentiment = (
            Sentiment.positive if signals.sentiment is Sentiment.positive else Sentiment.transformation
        )
        return ClassificationResult(
            sentiment=sentiment,
            tags=tags,
            reasoning=signals.reasoning or "Transformation narrative",
        )

    # Tier 2: present-tense promotion of the disfavored category.
    if signals.promotes_disfavored:
        return ClassificationResult(
            sentiment=Sentiment.negative,
            tags=tags,
            is_flagged_domain=True,
            flagged_reason=signals.flagged_reason or "Promotes animal products",
            recommended_block=True,
            reasoning=signals.reasoning,
        )

    # Tier 3: present-tense hostility, never for education or questions.
    if signals.present_hostility and not (
        signals.educational or signals.question or signals.sentiment is Sentiment.question
    ):
        return ClassificationResult(
            sentiment=Sentiment.negative,
            tags=tags,
            is_flagged_domain=True,
            flagged_reason=signals.flagged_reason or "Hostility toward a group",
            recommended_block=True,
            reasoning=signals.reasoning,
        )

    sentiment = signals.sentiment
    if sentiment is Sentiment.transformation:
        # Only tier 1 may assign a transformation sentiment.
        sentiment = Sentiment.neutral
    return ClassificationResult(sentiment=sentiment, tags=tags, reasoning=signals.reasoning)


def fallback_classification(text: str, reason: str) -> ClassificationResult:
    """Reduced-fidelity local heuristic.  Never recommends a block."""
    if _INTERROGATIVE.search(text):
        sentiment = Sentiment.question
    elif _POSITIVE_WORDS.search(text):
        sentiment = Sentiment.positive
    else:
        sentiment = Sentiment.neutral
    return ClassificationResult(
        sentiment=sentiment,
        reasoning=f"Fallback analysis ({reason})",
        degraded=True,
    )


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class ClassificationAdapter:
    """Semantic classifier with a deterministic precedence policy.

    Parameters
    ----------
    api_key : str | None
        Anthropic API key.  Falls back to ``ANTHROPIC_API_KEY`` when *None*.
    client : anthropic.AsyncAnthropic | None
        Pre-built client; mostly useful in tests.
    timeout : float
        Upper bound in seconds for a single classifier call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_CLASSIFIER_MODEL,
        timeout: float = 5.0,
        client: Any = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.metrics = metrics or Metrics()
        self._warned_unconfigured = False
        if client is not None:
            self._client = client
        else:
            key = api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY", "")
            self._client = (
                anthropic.AsyncAnthropic(api_key=key, timeout=timeout, max_retries=0) if key else None
            )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def classify(self, text: str) -> ClassificationResult:
        """Classify *text*; degrade to the local heuristic on any failure."""
        try:
            signals = await self._call_classifier(text)
        except ConfigurationError as exc:
            if not self._warned_unconfigured:
                log.warning("%s; using fallback classification", exc.message)
                self._warned_unconfigured = True
            self.metrics.increment("classifier.degraded")
            return fallback_classification(text, "classifier not configured")
        except TransientServiceError as exc:
            log.warning("Classifier unavailable: %s %s", exc.message, exc.details)
            self.metrics.increment("classifier.degraded")
            return fallback_classification(text, "classifier unavailable")

        result = apply_precedence(signals, text)
        log.info(
            "Classified content length=%d sentiment=%s flagged=%s block=%s",
            len(text),
            result.sentiment.value,
            result.is_flagged_domain,
            result.recommended_block,
        )
        return result

    async def _call_classifier(self, text: str) -> ClassifierSignals:
        if self._client is None:
            raise ConfigurationError("Classifier not configured. Set ANTHROPIC_API_KEY.")

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=300,
                    temperature=0.0,
                    system=CLASSIFIER_SYSTEM_PROMPT,
                    messages=[
                        {"role": "user", "content": CLASSIFIER_USER_PROMPT.format(content=text)}
                    ],
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransientServiceError("Classifier timed out", {"timeout": self.timeout}) from exc
        except anthropic.APIError as exc:
            raise TransientServiceError("Classifier request failed", {"error": str(exc)}) from exc

        content = response.content[0].text if response.content else ""
        try:
            return parse_signals(content)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise TransientServiceError(
                "Malformed classifier response", {"error": str(exc)[:200]}
            ) from exc
