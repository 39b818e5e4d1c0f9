"""Quota store: fixed-window rate limiting over an injected backend.

Windows are fixed, not sliding.  A window opens on the first request for a
key and lasts ``window_seconds``; the next request after it elapses opens a
fresh one.  A client that spends its whole quota at the end of one window
and again at the start of the next can therefore get close to twice the
limit through in a short burst.  That is the accepted cost of a single
atomic counter per key.

Backend failures fail open: the request is allowed, the failure is logged
and counted under ``quota.storage_errors``.  A quota outage must never stop
every write on the platform.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from trustgate.errors import StorageError
from trustgate.metrics import Metrics
from trustgate.quota.backends import QuotaBackend
from trustgate.quota.models import QuotaDecision

log = logging.getLogger(__name__)


class QuotaStore:
    """Rate limiter facade.  Build one per process and pass it around."""

    def __init__(
        self,
        backend: QuotaBackend,
        metrics: Optional[Metrics] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.metrics = metrics or Metrics()
        self._clock = clock
        # Backends that expire windows on their own must agree with this clock.
        use_clock = getattr(backend, "use_clock", None)
        if use_clock is not None:
            use_clock(clock)

    @property
    def storage_errors(self) -> int:
        return self.metrics.get("quota.storage_errors")

    def check_and_increment(
        self,
        identifier: str,
        action: str,
        limit: int,
        window_seconds: int,
    ) -> QuotaDecision:
        """Count one request for ``(identifier, action)`` and decide on it."""
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        now = self._clock()
        try:
            counter = self.backend.increment(identifier, action, limit, window_seconds, now)
        except StorageError as exc:
            self.metrics.increment("quota.storage_errors")
            log.error(
                "Quota backend unavailable, failing open action=%s error=%s",
                action,
                exc.details.get("error", exc.message),
            )
            return QuotaDecision.fail_open(limit, window_seconds)

        decision = QuotaDecision.from_counter(counter, limit, now)
        if not decision.allowed:
            self.metrics.increment("quota.rejections")
            log.info(
                "Quota exceeded identifier=%s action=%s limit=%d reset_in=%dms",
                identifier,
                action,
                limit,
                decision.reset_in_ms,
            )
        return decision

    def reset(self, identifier: str, action: str) -> None:
        """Forget the current window for ``(identifier, action)``."""
        self.backend.reset(identifier, action)

    def close(self) -> None:
        self.backend.close()
