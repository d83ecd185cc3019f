"""Courier — resilient message-delivery orchestrator.

Delivers discrete messages through a prioritised set of failure-prone
providers with retry, fallback, per-provider circuit breaking, shared
admission control, a deferred queue and an idempotency ledger.
"""

from courier.application.services import MessageDispatcher
from courier.domain.entities import Message, MessageStatus
from courier.domain.enums import FailureReason, MessagePriority, MessageState
from courier.domain.value_objects import DeliveryOutcome
from courier.ports.outbound import DeliveryProvider

__all__ = [
    "DeliveryOutcome",
    "DeliveryProvider",
    "FailureReason",
    "Message",
    "MessageDispatcher",
    "MessagePriority",
    "MessageState",
    "MessageStatus",
]
