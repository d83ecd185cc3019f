"""Resilience primitives: circuit breaking, admission control, retry policy."""

from courier.shared.resilience.circuit_breaker import CircuitBreaker, CircuitState
from courier.shared.resilience.rate_limiter import TokenBucket
from courier.shared.resilience.types import BreakerConfig, RateLimitConfig, RetryPolicy

__all__ = [
    "BreakerConfig",
    "CircuitBreaker",
    "CircuitState",
    "RateLimitConfig",
    "RetryPolicy",
    "TokenBucket",
]
