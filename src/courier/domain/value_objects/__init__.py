"""Domain value objects — immutable delivery outcomes.

A ``DeliveryOutcome`` is the single tagged result type the engine passes
around: either *delivered* (with a receipt) or *failed* (with a reason).
Downstream code branches on ``success`` and never on exception types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from courier.domain.enums import FailureReason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result of one delivery attempt or one whole submission."""

    success: bool
    provider: str
    receipt_id: str | None = None
    error: str | None = None
    reason: FailureReason | None = None
    completed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.success and self.reason is not None:
            raise ValueError("a successful outcome cannot carry a failure reason")
        if not self.success and not self.error:
            object.__setattr__(self, "error", "Unknown error")

    # ── Constructors ─────────────────────────────────────────
    @classmethod
    def delivered(cls, provider: str, receipt_id: str | None = None) -> DeliveryOutcome:
        return cls(success=True, provider=provider, receipt_id=receipt_id)

    @classmethod
    def failed(
        cls,
        provider: str,
        error: str,
        reason: FailureReason = FailureReason.PROVIDER_FAILURE,
    ) -> DeliveryOutcome:
        return cls(success=False, provider=provider, error=error, reason=reason)

    @property
    def is_deferred(self) -> bool:
        return self.reason is not None and self.reason.is_deferred
