"""In-process quota backend.

A single lock-guarded dict plus a background sweeper that evicts expired
windows.  Suitable for single-instance deployments, tests and degraded mode
only: counters are lost on restart and are not shared between processes, so
N instances effectively allow N times the configured limit.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from trustgate.quota.models import QuotaCounter, QuotaKey

log = logging.getLogger(__name__)


class InMemoryQuotaBackend:
    """Fixed-window counters held in process memory.

    Parameters
    ----------
    sweep_interval : float | None
        Seconds between sweeps of expired keys.  ``None`` disables the
        sweeper thread; call :meth:`sweep` manually instead.
    clock : callable
        Time source used by the sweeper.  A :class:`QuotaStore` built over
        this backend replaces it with its own clock through :meth:`use_clock`,
        so windows are opened and swept against the same time.
    """

    def __init__(
        self,
        sweep_interval: Optional[float] = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = threading.Lock()
        self._counters: dict[QuotaKey, tuple[int, float]] = {}
        self._clock = clock
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if sweep_interval is not None:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                args=(sweep_interval,),
                name="trustgate-quota-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    # -- backend protocol ----------------------------------------------------

    def increment(
        self,
        identifier: str,
        action: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> QuotaCounter:
        key = QuotaKey(identifier, action)
        with self._lock:
            entry = self._counters.get(key)
            if entry is None or entry[1] <= now:
                count, expires_at = 1, now + window_seconds
            else:
                count, expires_at = min(entry[0] + 1, limit + 1), entry[1]
            self._counters[key] = (count, expires_at)
        return QuotaCounter(key=key, count=count, window_expires_at=expires_at)

    def reset(self, identifier: str, action: str) -> None:
        with self._lock:
            self._counters.pop(QuotaKey(identifier, action), None)

    def close(self) -> None:
        """Stop the sweeper thread."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None

    # -- sweeping ------------------------------------------------------------

    def use_clock(self, clock: Callable[[], float]) -> None:
        """Sweep against *clock* from now on."""
        self._clock = clock

    def sweep(self, now: Optional[float] = None) -> int:
        """Delete expired windows and return how many were removed."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [k for k, (_, expires_at) in self._counters.items() if expires_at <= now]
            for key in expired:
                del self._counters[key]
        return len(expired)

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            removed = self.sweep()
            if removed:
                log.debug("Swept %d expired quota windows", removed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
