"""Simulated delivery providers for demos, load drills and tests.

A ``SimulatedProvider`` behaves like a flaky remote backend: it waits a
configurable latency plus jitter, fails at random with a configurable rate,
and always rejects recipients containing one of its blocked markers.
"""

from __future__ import annotations

import asyncio
import random
import string
import time
from collections.abc import Iterable
from typing import Awaitable, Callable

import structlog

from courier.domain.entities import Message
from courier.domain.value_objects import DeliveryOutcome
from courier.ports.outbound import DeliveryProvider

logger = structlog.get_logger(__name__)

_RECEIPT_ALPHABET = string.ascii_lowercase + string.digits


class SimulatedProvider(DeliveryProvider):
    """Configurable stand-in for a remote email/SMS/push backend."""

    def __init__(
        self,
        name: str,
        *,
        failure_rate: float = 0.0,
        latency_s: float = 0.0,
        jitter_s: float = 0.0,
        failure_message: str = "Network timeout or service unavailable",
        blocked_markers: Iterable[str] = (),
        blocked_message: str = "Recipient rejected",
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._name = name
        self._failure_rate = _clamp(failure_rate)
        self._latency = latency_s
        self._jitter = jitter_s
        self._failure_message = failure_message
        self._blocked_markers = tuple(blocked_markers)
        self._blocked_message = blocked_message
        self._rng = rng or random.Random()
        self._sleep = sleep
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def failure_rate(self) -> float:
        return self._failure_rate

    def set_failure_rate(self, rate: float) -> None:
        self._failure_rate = _clamp(rate)

    async def attempt_delivery(self, message: Message) -> DeliveryOutcome:
        self.calls += 1
        delay = self._latency + self._rng.random() * self._jitter
        if delay > 0:
            await self._sleep(delay)

        if self._rng.random() < self._failure_rate:
            raise ConnectionError(f"{self._name}: {self._failure_message}")

        if any(marker in message.recipient for marker in self._blocked_markers):
            raise ValueError(f"{self._name}: {self._blocked_message}")

        logger.debug("simulated_delivery", provider=self._name, message_id=message.id)
        return DeliveryOutcome.delivered(self._name, receipt_id=self._receipt_id())

    def _receipt_id(self) -> str:
        slug = self._name.lower().replace(" ", "-")
        suffix = "".join(self._rng.choices(_RECEIPT_ALPHABET, k=9))
        return f"{slug}-{int(time.time() * 1000)}-{suffix}"


def _clamp(rate: float) -> float:
    return max(0.0, min(1.0, rate))


def default_providers() -> list[SimulatedProvider]:
    """The primary/backup pair used by the demo wiring."""
    return [
        SimulatedProvider(
            "Provider A",
            failure_rate=0.3,
            latency_s=0.1,
            jitter_s=0.2,
            blocked_markers=("invalid",),
            blocked_message="Invalid address format",
        ),
        SimulatedProvider(
            "Provider B",
            failure_rate=0.2,
            latency_s=0.15,
            jitter_s=0.3,
            failure_message="Rate limit exceeded or temporary service error",
            blocked_markers=("blocked",),
            blocked_message="Recipient blocked or domain not allowed",
        ),
    ]
