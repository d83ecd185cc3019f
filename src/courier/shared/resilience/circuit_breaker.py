"""Circuit breaker — prevents cascading failures by isolating unhealthy providers.

State machine:
    CLOSED    → (threshold failures within monitoring window) → OPEN
    OPEN      → (reset timeout elapsed since last failure)    → HALF_OPEN
    HALF_OPEN → (2 consecutive probe successes)               → CLOSED
    HALF_OPEN → (any probe failure)                           → OPEN

The half-open rule is deliberately stricter than the closed one: a single
failed probe reopens regardless of the threshold.
"""

from __future__ import annotations

import enum
import threading
import time
from collections import deque
from typing import Awaitable, Callable, TypeVar

import structlog

from courier.domain.exceptions import CircuitOpenError
from courier.shared.observability.metrics import BREAKER_TRANSITIONS
from courier.shared.resilience.types import BreakerConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PROBE_SUCCESSES_TO_CLOSE = 2


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Per-provider circuit breaker with a rolling failure window."""

    def __init__(
        self,
        provider_id: str,
        config: BreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider_id = provider_id
        self._config = config or BreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._probe_successes = 0
        self._last_failure_time: float | None = None
        self._failure_history: deque[float] = deque()
        self._lock = threading.Lock()

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def state(self) -> CircuitState:
        """Current state.  Reading it never triggers a transition."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        """Consecutive failures since the last success or reset."""
        with self._lock:
            return self._consecutive_failures

    @property
    def recent_failures(self) -> int:
        """Failures still inside the monitoring window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._failure_history)

    def allows_request(self) -> bool:
        """Whether ``execute`` would let a call through right now."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            return self._cooldown_expired(self._clock())

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If open and the reset timeout has not elapsed.
                The operation is not invoked.

        Any exception raised by ``operation`` is recorded and re-raised.
        """
        self._before_call()
        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        """Force the circuit back to CLOSED (administrative override)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._probe_successes = 0
            self._last_failure_time = None
            self._failure_history.clear()
        logger.info("circuit_breaker_force_reset", provider=self._provider_id)

    # ── Internals ────────────────────────────────────────────
    def _before_call(self) -> None:
        with self._lock:
            if self._state != CircuitState.OPEN:
                return
            now = self._clock()
            if not self._cooldown_expired(now):
                raise CircuitOpenError(self._provider_id)
            self._state = CircuitState.HALF_OPEN
            self._probe_successes = 0
            elapsed = now - (self._last_failure_time or now)
        self._announce(CircuitState.HALF_OPEN, "circuit_breaker_half_open", elapsed_s=round(elapsed, 3))

    def _on_success(self) -> None:
        closed = False
        with self._lock:
            self._consecutive_failures = 0
            self._prune(self._clock())
            if self._state == CircuitState.HALF_OPEN:
                self._probe_successes += 1
                if self._probe_successes >= PROBE_SUCCESSES_TO_CLOSE:
                    self._state = CircuitState.CLOSED
                    self._probe_successes = 0
                    closed = True
        if closed:
            self._announce(CircuitState.CLOSED, "circuit_breaker_closed")

    def _on_failure(self) -> None:
        event: str | None = None
        with self._lock:
            now = self._clock()
            self._consecutive_failures += 1
            self._last_failure_time = now
            self._failure_history.append(now)
            self._prune(now)

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                event = "circuit_breaker_reopened"
            elif (
                self._state == CircuitState.CLOSED
                and len(self._failure_history) >= self._config.failure_threshold
            ):
                self._state = CircuitState.OPEN
                event = "circuit_breaker_opened"
            failures = self._consecutive_failures
            recent = len(self._failure_history)

        if event is not None:
            self._announce(
                CircuitState.OPEN,
                event,
                level="warning",
                failures=failures,
                recent_failures=recent,
                reset_timeout_s=self._config.reset_timeout,
            )

    def _cooldown_expired(self, now: float) -> bool:
        """Caller must hold lock."""
        if self._last_failure_time is None:
            return True
        return now - self._last_failure_time > self._config.reset_timeout

    def _prune(self, now: float) -> None:
        """Drop failures older than the monitoring window. Caller holds lock."""
        cutoff = now - self._config.monitoring_window
        while self._failure_history and self._failure_history[0] <= cutoff:
            self._failure_history.popleft()

    def _announce(self, state: CircuitState, event: str, *, level: str = "info", **context: object) -> None:
        BREAKER_TRANSITIONS.labels(provider=self._provider_id, state=state.value).inc()
        getattr(logger, level)(event, provider=self._provider_id, state=state.value, **context)
