"""Domain entities — messages and their delivery status.

``Message`` is immutable once created.  ``MessageStatus`` is mutable but only
through its transition methods, which keep the attempt counter monotonic and
the timestamps consistent with the state.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from courier.domain.enums import MessagePriority, MessageState
from courier.domain.value_objects import DeliveryOutcome


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════
#  Message
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class Message:
    """A discrete message to deliver.

    Attributes:
        id:         Caller-assigned identifier; the idempotency key.
        recipient:  Destination address (email, phone number, device token).
        subject:    Short title, kept on the status for display.
        body:       Payload text.
        priority:   Informational only; the engine never reorders on it.
        created_at: When the caller created the message.
        metadata:   Arbitrary extra payload fields forwarded to providers.
    """

    id: str = field(default_factory=_new_id)
    recipient: str = ""
    subject: str = ""
    body: str = ""
    priority: MessagePriority = MessagePriority.NORMAL
    created_at: datetime = field(default_factory=_utcnow)
    metadata: Mapping[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  MessageStatus
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class MessageStatus:
    """Ledger record for one message identifier."""

    message_id: str
    recipient: str = ""
    subject: str = ""
    state: MessageState = MessageState.PENDING
    attempts: int = 0
    provider: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    last_attempt_at: datetime | None = None

    @classmethod
    def for_message(cls, message: Message) -> MessageStatus:
        return cls(
            message_id=message.id,
            recipient=message.recipient,
            subject=message.subject,
        )

    # ── State transitions ────────────────────────────────────
    def mark_queued(self) -> None:
        self.state = MessageState.QUEUED

    def mark_sending(self) -> None:
        self.state = MessageState.SENDING
        self.error = None

    def record_attempt(self, provider: str) -> None:
        self.attempts += 1
        self.provider = provider
        self.last_attempt_at = _utcnow()

    def mark_sent(self, outcome: DeliveryOutcome) -> None:
        self.state = MessageState.SENT
        self.provider = outcome.provider
        self.error = None
        self.last_attempt_at = outcome.completed_at

    def mark_failed(self, error: str) -> None:
        self.state = MessageState.FAILED
        self.error = error
        self.last_attempt_at = _utcnow()

    def snapshot(self) -> MessageStatus:
        """Detached copy that callers may keep or mutate freely."""
        return dataclasses.replace(self)
