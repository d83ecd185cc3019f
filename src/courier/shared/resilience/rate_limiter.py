"""Token bucket — shared admission control for all sends.

Quota refills continuously (not in steps) at ``capacity / window`` tokens per
second, capped at ``capacity``.  The internal quota is fractional so slow
call cadences never starve on rounding.  Nothing here blocks; callers decide
what to do on denial.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

import structlog

from courier.shared.resilience.types import RateLimitConfig

logger = structlog.get_logger(__name__)


class TokenBucket:
    """Thread-safe, continuously refilling token bucket."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._rate = self._config.refill_rate

        self._tokens = float(self._config.capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._config.capacity

    @property
    def refill_rate(self) -> float:
        return self._rate

    def try_acquire(self) -> bool:
        """Take one token if available.  Refill runs even on denial."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def time_until_next_token(self) -> float:
        """Seconds until a token is available, rounded up to the millisecond."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                return 0.0
            wait = (1 - self._tokens) / self._rate
            return math.ceil(wait * 1000) / 1000

    def available_tokens(self) -> int:
        """Whole tokens available, for display only."""
        with self._lock:
            self._refill()
            return math.floor(self._tokens)

    def reset(self) -> None:
        """Refill to capacity (administrative override)."""
        with self._lock:
            self._tokens = float(self._config.capacity)
            self._last_refill = self._clock()
        logger.info("token_bucket_reset", capacity=self._config.capacity)

    # ── Internals ────────────────────────────────────────────
    def _refill(self) -> None:
        """Caller must hold lock."""
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self._config.capacity), self._tokens + elapsed * self._rate)
        self._last_refill = now
