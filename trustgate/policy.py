"""Static policy tables: quota limits per action and moderation precedence.

Quota limits can be overridden per deployment with a YAML file::

    quotas:
      post_creation:
        limit: 20
        window_seconds: 3600
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from trustgate.moderation.models import Category

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaPolicy:
    """Limit and window for one protected action."""

    limit: int
    window_seconds: int


# ---------------------------------------------------------------------------
# Quota table (action -> limit per window)
# ---------------------------------------------------------------------------

HOUR = 3600
DAY = 24 * HOUR

QUOTA_POLICIES: dict[str, QuotaPolicy] = {
    # User-scoped
    "post_creation": QuotaPolicy(10, HOUR),
    "comment_creation": QuotaPolicy(30, HOUR),
    "reactions": QuotaPolicy(100, HOUR),
    "follow_actions": QuotaPolicy(50, HOUR),
    "pack_creation": QuotaPolicy(5, HOUR),
    "place_creation": QuotaPolicy(10, HOUR),
    "place_claim": QuotaPolicy(3, DAY),
    "content_analysis": QuotaPolicy(10, 60),
    "moderation_check": QuotaPolicy(30, 60),
    # IP-scoped, looser so shared addresses are not punished
    "post_creation_ip": QuotaPolicy(30, HOUR),
    "comment_creation_ip": QuotaPolicy(90, HOUR),
    "content_analysis_ip": QuotaPolicy(30, 60),
    "moderation_check_ip": QuotaPolicy(60, 60),
    "contact_form": QuotaPolicy(3, HOUR),
    "auth_attempts": QuotaPolicy(5, 15 * 60),
    "api_general": QuotaPolicy(100, 60),
}

# Ordered (scope, action) checks per protected operation.  The IP check runs
# first so unauthenticated bulk traffic is cut off before the user lookup.
PROTECTED_OPERATIONS: dict[str, list[tuple[str, str]]] = {
    "post": [("ip", "post_creation_ip"), ("user", "post_creation")],
    "comment": [("ip", "comment_creation_ip"), ("user", "comment_creation")],
    "pack": [("ip", "api_general"), ("user", "pack_creation")],
    "place": [("ip", "api_general"), ("user", "place_creation")],
    "place_claim": [("ip", "api_general"), ("user", "place_claim")],
    "content_analysis": [("ip", "content_analysis_ip"), ("user", "content_analysis")],
    "moderation_check": [("ip", "moderation_check_ip"), ("user", "moderation_check")],
    "contact": [("ip", "contact_form")],
}

# ---------------------------------------------------------------------------
# Moderation precedence
# ---------------------------------------------------------------------------

# Scan order used when building warnings.
CATEGORY_ORDER: tuple[Category, ...] = (
    Category.sexual,
    Category.hate,
    Category.harassment,
    Category.violence,
    Category.self_harm,
)

# Any of these forces a block regardless of every other signal.
BLOCKING_CATEGORIES: frozenset[Category] = frozenset(
    {Category.sexual_minors, Category.self_harm, Category.graphic_violence}
)

CATEGORY_LABELS: dict[Category, str] = {
    Category.sexual: "sexual content",
    Category.hate: "hate speech",
    Category.harassment: "harassment",
    Category.violence: "violence",
    Category.self_harm: "self-harm content",
    Category.graphic_violence: "graphic violence",
    Category.sexual_minors: "sexual content involving minors",
}

DOMAIN_WARNING_LABEL = "anti-vegan content"


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


def load_policy_overrides(path: str | Path) -> dict[str, QuotaPolicy]:
    """Return a copy of :data:`QUOTA_POLICIES` with the YAML file merged in.

    Raises ``ValueError`` for a malformed entry so a bad deploy fails loudly.
    """
    data = yaml.safe_load(Path(path).read_text()) or {}
    policies = dict(QUOTA_POLICIES)
    for action, entry in (data.get("quotas") or {}).items():
        if not isinstance(entry, dict):
            raise ValueError(f"Quota override for {action!r} must be a mapping")
        base = policies.get(action)
        limit = int(entry.get("limit", base.limit if base else 0))
        window = int(entry.get("window_seconds", base.window_seconds if base else 0))
        if limit < 1 or window < 1:
            raise ValueError(f"Quota override for {action!r} needs positive limit and window_seconds")
        policies[action] = QuotaPolicy(limit, window)
        log.info("Quota override %s: %d per %ds", action, limit, window)
    return policies
