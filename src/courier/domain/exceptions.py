"""Delivery exception hierarchy.

All exceptions inherit from ``DeliveryError`` so callers can catch the entire
family in one clause while still discriminating on subclass.  None of these
ever escape ``MessageDispatcher.submit``; they are internal signals that the
orchestrator turns into failed outcomes.
"""

from __future__ import annotations


class DeliveryError(Exception):
    """Base class for all delivery-layer errors."""

    def __init__(self, message: str, *, code: str = "DELIVERY_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Configuration ────────────────────────────────────────────
class ConfigurationError(DeliveryError):
    """Engine options failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


# ── Provider attempts ───────────────────────────────────────
class ProviderFailureError(DeliveryError):
    """A single delivery attempt through one provider failed."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(reason, code="PROVIDER_FAILURE")


class CircuitOpenError(DeliveryError):
    """The provider's breaker is open; the provider was not called."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            f"Circuit breaker for {provider!r} is OPEN",
            code="CIRCUIT_OPEN",
        )
