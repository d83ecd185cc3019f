"""Delivery ledger — the system of record for message status and idempotency.

Holds one ``MessageStatus`` per identifier plus the idempotency set: the
identifiers whose delivery has completed successfully, each mapped to the
outcome that completed it.  An identifier enters that set once, on its first
success, and stays there until ``clear``.
"""

from __future__ import annotations

import threading
from collections import Counter

from courier.domain.entities import Message, MessageStatus
from courier.domain.enums import MessageState
from courier.domain.value_objects import DeliveryOutcome


class DeliveryLedger:
    """In-memory, thread-safe status table keyed by message id."""

    def __init__(self) -> None:
        self._statuses: dict[str, MessageStatus] = {}
        self._completed: dict[str, DeliveryOutcome] = {}
        self._lock = threading.Lock()

    # ── Queries ──────────────────────────────────────────────
    def get(self, message_id: str) -> MessageStatus | None:
        with self._lock:
            status = self._statuses.get(message_id)
            return status.snapshot() if status else None

    def all(self) -> list[MessageStatus]:
        with self._lock:
            return [s.snapshot() for s in self._statuses.values()]

    def completed_outcome(self, message_id: str) -> DeliveryOutcome | None:
        """The recorded success for ``message_id``, if it has one."""
        with self._lock:
            return self._completed.get(message_id)

    def is_completed(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._completed

    def counts_by_state(self) -> dict[MessageState, int]:
        with self._lock:
            counts = Counter(s.state for s in self._statuses.values())
        return {state: counts.get(state, 0) for state in MessageState}

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)

    # ── Updates ──────────────────────────────────────────────
    def mark_queued(self, message: Message) -> MessageStatus:
        with self._lock:
            status = self._ensure(message)
            status.mark_queued()
            return status.snapshot()

    def mark_sending(self, message: Message) -> MessageStatus:
        with self._lock:
            status = self._ensure(message)
            status.mark_sending()
            return status.snapshot()

    def record_attempt(self, message_id: str, provider: str) -> int:
        """Count one attempt before it runs; returns the new total."""
        with self._lock:
            status = self._by_id(message_id)
            status.record_attempt(provider)
            return status.attempts

    def mark_sent(self, message_id: str, outcome: DeliveryOutcome) -> MessageStatus:
        if not outcome.success:
            raise ValueError("mark_sent requires a successful outcome")
        with self._lock:
            status = self._by_id(message_id)
            status.mark_sent(outcome)
            self._completed.setdefault(message_id, outcome)
            return status.snapshot()

    def mark_failed(self, message_id: str, error: str) -> MessageStatus:
        with self._lock:
            status = self._by_id(message_id)
            status.mark_failed(error)
            return status.snapshot()

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._completed.clear()

    # ── Internals ────────────────────────────────────────────
    def _ensure(self, message: Message) -> MessageStatus:
        """Existing status, or a fresh one. Caller holds lock."""
        status = self._statuses.get(message.id)
        if status is None:
            status = MessageStatus.for_message(message)
            self._statuses[message.id] = status
        return status

    def _by_id(self, message_id: str) -> MessageStatus:
        """Status for ``message_id``, recreated if a clear raced an in-flight send. Caller holds lock."""
        status = self._statuses.get(message_id)
        if status is None:
            status = MessageStatus(message_id=message_id)
            self._statuses[message_id] = status
        return status
