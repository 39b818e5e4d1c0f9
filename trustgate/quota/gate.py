"""Quota gate: ordered, short-circuiting quota checks per operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional, Sequence

from trustgate.policy import PROTECTED_OPERATIONS, QUOTA_POLICIES, QuotaPolicy
from trustgate.quota.models import QuotaDecision
from trustgate.quota.store import QuotaStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaCheck:
    """One step of a gate: which identifier scope, which action, which quota."""

    scope: str
    action: str
    limit: int
    window_seconds: int


# Returned when no check applied at all (e.g. unknown operation with no
# identifiers); nothing was counted so nothing is limited.
UNLIMITED = QuotaDecision(allowed=True, limit=0, current=0, remaining=0, reset_in=timedelta(0))


class QuotaGate:
    """Runs quota checks in order and stops at the first rejection.

    The cheap IP-scoped check comes first so anonymous bulk traffic is cut
    off before the authenticated check runs.
    """

    def __init__(
        self,
        store: QuotaStore,
        policies: Optional[Mapping[str, QuotaPolicy]] = None,
        operations: Optional[Mapping[str, Sequence[tuple[str, str]]]] = None,
    ) -> None:
        self.store = store
        self.policies = dict(policies if policies is not None else QUOTA_POLICIES)
        self.operations = dict(operations if operations is not None else PROTECTED_OPERATIONS)

    def checks_for(self, operation: str) -> list[QuotaCheck]:
        """Resolve the ordered checks configured for *operation*."""
        try:
            steps = self.operations[operation]
        except KeyError:
            raise ValueError(f"Unknown protected operation: {operation!r}") from None
        checks = []
        for scope, action in steps:
            policy = self.policies[action]
            checks.append(QuotaCheck(scope, action, policy.limit, policy.window_seconds))
        return checks

    def check(
        self,
        checks: Sequence[QuotaCheck],
        identifiers: Mapping[str, Optional[str]],
    ) -> QuotaDecision:
        """Evaluate *checks* in order against the identifier for each scope.

        A check whose scope has no identifier (an anonymous caller on a
        user-scoped check) is skipped.
        """
        decision = UNLIMITED
        for check in checks:
            identifier = identifiers.get(check.scope)
            if not identifier:
                log.debug("Skipping %s quota check %s: no identifier", check.scope, check.action)
                continue
            decision = self.store.check_and_increment(
                identifier, check.action, check.limit, check.window_seconds
            )
            if not decision.allowed:
                return decision
        return decision

    def check_operation(
        self,
        operation: str,
        identifiers: Mapping[str, Optional[str]],
    ) -> QuotaDecision:
        return self.check(self.checks_for(operation), identifiers)
