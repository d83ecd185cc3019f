"""Courier — engine configuration."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from courier.shared.resilience.types import BreakerConfig, RateLimitConfig, RetryPolicy


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file.

    Immutable once built; all durations are in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ── Logging ──────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool = False
    recent_events_limit: int = Field(1000, ge=1)

    # ── Retry ────────────────────────────────────────────────
    retry_max_attempts: int = Field(3, ge=1)
    retry_base_delay_s: float = Field(1.0, ge=0)
    retry_max_delay_s: float = Field(5.0, ge=0)
    retry_backoff_factor: float = Field(2.0, ge=1)

    # ── Admission (token bucket) ─────────────────────────────
    rate_limit_capacity: int = Field(5, ge=1)
    rate_limit_window_s: float = Field(10.0, gt=0)

    # ── Circuit breaker ──────────────────────────────────────
    breaker_failure_threshold: int = Field(3, ge=1)
    breaker_reset_timeout_s: float = Field(30.0, gt=0)
    breaker_monitoring_window_s: float = Field(60.0, gt=0)

    # ── Deferred queue ───────────────────────────────────────
    queue_pause_interval_s: float = Field(5.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> Settings:
        if self.retry_max_delay_s < self.retry_base_delay_s:
            raise ValueError("retry_max_delay_s must be >= retry_base_delay_s")
        return self

    # ── Derived helpers ──────────────────────────────────────
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_s,
            max_delay=self.retry_max_delay_s,
            backoff_factor=self.retry_backoff_factor,
        )

    def rate_limit(self) -> RateLimitConfig:
        return RateLimitConfig(
            capacity=self.rate_limit_capacity,
            window=self.rate_limit_window_s,
        )

    def breaker(self) -> BreakerConfig:
        return BreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            reset_timeout=self.breaker_reset_timeout_s,
            monitoring_window=self.breaker_monitoring_window_s,
        )


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
