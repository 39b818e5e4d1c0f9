"""In-process counters for alerting on degraded operation."""

from __future__ import annotations

import threading
from collections import Counter


class Metrics:
    """Thread-safe named counters.

    Counter names are dotted, e.g. ``quota.storage_errors`` or
    ``decision.block``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[str] = Counter()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all counters, sorted by name."""
        with self._lock:
            return dict(sorted(self._counts.items()))
