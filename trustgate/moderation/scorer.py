"""Moderation scorer around an external harmful-content scoring service.

Speaks the OpenAI ``/v1/moderations`` wire format.  Vendor categories are
folded onto the closed :class:`Category` set at this boundary.  Any failure
returns a neutral score marked ``degraded`` so the write is not blocked by
the outage.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

from trustgate.config import DEFAULT_MODERATION_MODEL, DEFAULT_MODERATION_URL
from trustgate.errors import ConfigurationError, TransientServiceError
from trustgate.metrics import Metrics
from trustgate.moderation.models import Category, ModerationScore

log = logging.getLogger(__name__)

# Vendor category -> our category.  Several vendor keys may fold into one.
VENDOR_CATEGORIES: dict[str, Category] = {
    "sexual": Category.sexual,
    "sexual/minors": Category.sexual_minors,
    "hate": Category.hate,
    "hate/threatening": Category.hate,
    "harassment": Category.harassment,
    "harassment/threatening": Category.harassment,
    "violence": Category.violence,
    "violence/graphic": Category.graphic_violence,
    "self-harm": Category.self_harm,
    "self-harm/intent": Category.self_harm,
    "self-harm/instructions": Category.self_harm,
}


def fold_categories(
    raw_flags: dict[str, Any],
    raw_scores: dict[str, Any],
) -> tuple[dict[Category, bool], dict[Category, float]]:
    """Map vendor flags and scores onto the closed category set.

    A folded flag is true if any contributing vendor flag is true; a folded
    score is the maximum contributing score.  Unknown vendor keys are
    ignored and missing ones count as false / 0.0.
    """
    flags = {c: False for c in Category}
    scores = {c: 0.0 for c in Category}
    for vendor_key, category in VENDOR_CATEGORIES.items():
        flag = raw_flags.get(vendor_key)
        if flag is not None and not isinstance(flag, bool):
            raise TypeError(f"Category {vendor_key!r} flag is not a boolean")
        flags[category] = flags[category] or bool(flag)
        score = raw_scores.get(vendor_key)
        if score is not None:
            scores[category] = max(scores[category], float(score))
    return flags, scores


class ModerationScorer:
    """Async client for the harmful-content scorer.

    Parameters
    ----------
    api_key : str | None
        Scorer API key.  Falls back to ``OPENAI_API_KEY`` when *None*.
    moderate_images : bool
        Forward image URLs as multimodal input.
    client : httpx.AsyncClient | None
        Pre-built client; mostly useful in tests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: str = DEFAULT_MODERATION_URL,
        model: str = DEFAULT_MODERATION_MODEL,
        timeout: float = 5.0,
        moderate_images: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY", "")
        self.url = url
        self.model = model
        self.timeout = timeout
        self.moderate_images = moderate_images
        self.metrics = metrics or Metrics()
        self._client = client
        self._warned_unconfigured = False

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def score(
        self,
        text: str,
        image_url: Optional[str] = None,
        flagged_domain: bool = False,
    ) -> ModerationScore:
        """Score *text* (and optionally an image); neutral on any failure."""
        try:
            score = await self._call_scorer(text, image_url)
        except ConfigurationError as exc:
            if not self._warned_unconfigured:
                log.warning("%s; skipping harmful-content scoring", exc.message)
                self._warned_unconfigured = True
            self.metrics.increment("scorer.degraded")
            return ModerationScore.neutral()
        except TransientServiceError as exc:
            log.warning("Moderation scorer unavailable: %s %s", exc.message, exc.details)
            self.metrics.increment("scorer.degraded")
            return ModerationScore.neutral()

        if score.flagged or flagged_domain:
            log.info(
                "Moderation flags=%s flagged_domain=%s",
                sorted(c.value for c, v in score.categories.items() if v),
                flagged_domain,
            )
        return score

    def _build_input(self, text: str, image_url: Optional[str]) -> Any:
        if image_url and self.moderate_images:
            return [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        return text

    async def _call_scorer(self, text: str, image_url: Optional[str]) -> ModerationScore:
        if not self.configured:
            raise ConfigurationError("Moderation scorer not configured. Set OPENAI_API_KEY.")

        body = {"model": self.model, "input": self._build_input(text, image_url)}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._client is not None:
                resp = await self._client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise TransientServiceError("Moderation scorer timed out", {"timeout": self.timeout}) from exc
        except httpx.HTTPStatusError as exc:
            raise TransientServiceError(
                "Moderation scorer error", {"status": exc.response.status_code}
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            raise TransientServiceError("Moderation scorer request failed", {"error": str(exc)}) from exc

        try:
            result = data["results"][0]
            flags, scores = fold_categories(
                result.get("categories") or {},
                result.get("category_scores") or {},
            )
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise TransientServiceError("Malformed moderation response", {"error": str(exc)}) from exc
        return ModerationScore(categories=flags, category_scores=scores)
