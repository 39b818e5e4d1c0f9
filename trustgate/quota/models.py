"""Data models for quota accounting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class QuotaKey:
    """A counter is scoped to one identifier (IP or user id) and one action."""

    identifier: str
    action: str


@dataclass(frozen=True)
class QuotaCounter:
    """Backend state after an atomic increment.

    ``count`` saturates at ``limit + 1``; ``window_expires_at`` is a Unix
    timestamp and only moves forward when a new window starts.
    """

    key: QuotaKey
    count: int
    window_expires_at: float


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""

    allowed: bool
    limit: int
    current: int
    remaining: int
    reset_in: timedelta

    @classmethod
    def from_counter(cls, counter: QuotaCounter, limit: int, now: float) -> "QuotaDecision":
        allowed = counter.count <= limit
        current = min(counter.count, limit)
        return cls(
            allowed=allowed,
            limit=limit,
            current=current,
            remaining=max(0, limit - current),
            reset_in=timedelta(seconds=max(0.0, counter.window_expires_at - now)),
        )

    @classmethod
    def fail_open(cls, limit: int, window_seconds: int) -> "QuotaDecision":
        """Decision returned when the backend is unavailable."""
        return cls(
            allowed=True,
            limit=limit,
            current=0,
            remaining=limit,
            reset_in=timedelta(seconds=window_seconds),
        )

    @property
    def reset_in_ms(self) -> int:
        return int(self.reset_in.total_seconds() * 1000)

    @property
    def retry_after(self) -> int:
        """Whole seconds for the ``Retry-After`` header."""
        return max(1, math.ceil(self.reset_in.total_seconds()))
