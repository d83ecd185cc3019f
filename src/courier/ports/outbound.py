"""Outbound ports — interfaces that delivery channels must implement.

These are the *driven* ports in hexagonal architecture.  The orchestration
engine depends only on this abstraction, never on a concrete email, SMS or
push backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from courier.domain.entities import Message
from courier.domain.value_objects import DeliveryOutcome


class DeliveryProvider(ABC):
    """A single delivery channel.

    ``attempt_delivery`` must either return a successful outcome carrying a
    receipt id, or signal failure by raising or by returning a failed
    outcome.  It must be safe to call repeatedly with the same message.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def attempt_delivery(self, message: Message) -> DeliveryOutcome: ...
