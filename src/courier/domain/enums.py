"""Domain enumerations for message delivery."""

from __future__ import annotations

import enum


class MessagePriority(str, enum.Enum):
    """Caller-assigned priority.  Informational only; never reorders."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class MessageState(str, enum.Enum):
    """Lifecycle state of a submitted message."""

    PENDING = "pending"
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageState.SENT, MessageState.FAILED)


class FailureReason(str, enum.Enum):
    """Why a delivery attempt or submission did not succeed."""

    PROVIDER_FAILURE = "provider_failure"
    CIRCUIT_OPEN = "circuit_open"
    PROVIDERS_EXHAUSTED = "providers_exhausted"
    RATE_LIMITED = "rate_limited"
    ALL_BREAKERS_OPEN = "all_breakers_open"
    UNEXPECTED_ERROR = "unexpected_error"

    @property
    def is_deferred(self) -> bool:
        """True when the message was parked in the deferred queue."""
        return self in (FailureReason.RATE_LIMITED, FailureReason.ALL_BREAKERS_OPEN)
