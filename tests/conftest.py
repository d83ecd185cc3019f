"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from courier.application.services import MessageDispatcher
from courier.domain.entities import Message
from courier.domain.value_objects import DeliveryOutcome
from courier.ports.outbound import DeliveryProvider
from courier.shared.resilience.types import BreakerConfig, RateLimitConfig, RetryPolicy


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedProvider(DeliveryProvider):
    """Provider that fails its first ``fail_first`` calls, or every call."""

    def __init__(
        self,
        name: str,
        *,
        fail_first: int = 0,
        always_fail: bool = False,
        return_failure: bool = False,
    ) -> None:
        self._name = name
        self.fail_first = fail_first
        self.always_fail = always_fail
        self.return_failure = return_failure
        self.calls = 0
        self.delivered: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def attempt_delivery(self, message: Message) -> DeliveryOutcome:
        self.calls += 1
        if self.always_fail or self.calls <= self.fail_first:
            if self.return_failure:
                return DeliveryOutcome.failed(self._name, f"{self._name} rejected")
            raise RuntimeError(f"{self._name} is down")
        self.delivered.append(message.id)
        return DeliveryOutcome.delivered(self._name, receipt_id=f"{self._name}-{self.calls}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_message() -> Callable[..., Message]:
    def _make(message_id: str = "m1", **kwargs: Any) -> Message:
        kwargs.setdefault("recipient", "x@y.com")
        kwargs.setdefault("subject", "Hello")
        kwargs.setdefault("body", "Body")
        return Message(id=message_id, **kwargs)

    return _make


@pytest.fixture
def make_dispatcher(clock: FakeClock) -> Callable[..., MessageDispatcher]:
    """Dispatcher on the fake clock with fast, generous defaults."""

    def _make(providers: list[DeliveryProvider], **kwargs: Any) -> MessageDispatcher:
        kwargs.setdefault("retry", RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=5.0, backoff_factor=2.0))
        kwargs.setdefault("rate_limit", RateLimitConfig(capacity=100, window=10.0))
        kwargs.setdefault("breaker", BreakerConfig(failure_threshold=3, reset_timeout=30.0, monitoring_window=60.0))
        return MessageDispatcher(providers, clock=clock, sleep=clock.sleep, **kwargs)

    return _make
