"""Core option types for the resilience primitives.

All durations are in seconds.  Each type validates itself on construction so
the engine can trust its contents without re-checking.
"""

from __future__ import annotations

from dataclasses import dataclass

from courier.domain.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Per-provider retry budget with capped exponential backoff.

    Attributes:
        max_attempts:   Tries per provider before falling through.
        base_delay:     Wait after the first failed try.
        max_delay:      Upper bound on any single wait.
        backoff_factor: Multiplier applied per further failed try.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must not be negative")
        if self.max_delay < self.base_delay:
            raise ConfigurationError("max_delay must be >= base_delay")
        if self.backoff_factor < 1:
            raise ConfigurationError("backoff_factor must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Wait after failed try number ``attempt`` (1-based)."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Token-bucket admission quota: ``capacity`` sends per ``window``."""

    capacity: int = 5
    window: float = 10.0

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ConfigurationError("capacity must be at least 1")
        if self.window <= 0:
            raise ConfigurationError("window must be positive")

    @property
    def refill_rate(self) -> float:
        """Tokens regained per second."""
        return self.capacity / self.window


@dataclass(frozen=True, slots=True)
class BreakerConfig:
    """Circuit-breaker thresholds.

    Attributes:
        failure_threshold: Failures inside ``monitoring_window`` that open it.
        reset_timeout:     Seconds after the last failure before probing.
        monitoring_window: How far back failures are counted.
    """

    failure_threshold: int = 3
    reset_timeout: float = 30.0
    monitoring_window: float = 60.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be at least 1")
        if self.reset_timeout <= 0 or self.monitoring_window <= 0:
            raise ConfigurationError("breaker durations must be positive")
