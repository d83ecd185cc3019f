"""Tests for the simulated delivery providers."""

from __future__ import annotations

import random

import pytest

from courier.adapters.outbound.providers import SimulatedProvider, default_providers
from courier.domain.entities import Message


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class TestSimulatedProvider:
    @pytest.mark.asyncio
    async def test_reliable_provider_delivers(self) -> None:
        provider = SimulatedProvider("Provider A", rng=random.Random(7))

        outcome = await provider.attempt_delivery(Message(id="m1", recipient="x@y.com"))

        assert outcome.success is True
        assert outcome.provider == "Provider A"
        assert outcome.receipt_id is not None
        assert outcome.receipt_id.startswith("provider-a-")
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_always_failing_provider_raises(self) -> None:
        provider = SimulatedProvider("A", failure_rate=1.0, failure_message="down")

        with pytest.raises(ConnectionError, match="A: down"):
            await provider.attempt_delivery(Message(id="m1", recipient="x@y.com"))

    @pytest.mark.asyncio
    async def test_blocked_recipient_is_rejected(self) -> None:
        provider = SimulatedProvider("A", blocked_markers=("invalid",), blocked_message="bad address")

        with pytest.raises(ValueError, match="bad address"):
            await provider.attempt_delivery(Message(id="m1", recipient="invalid@y.com"))

    @pytest.mark.asyncio
    async def test_latency_uses_injected_sleep(self) -> None:
        sleep = RecordingSleep()
        provider = SimulatedProvider("A", latency_s=0.1, sleep=sleep)

        await provider.attempt_delivery(Message(id="m1", recipient="x@y.com"))

        assert sleep.calls == [pytest.approx(0.1)]

    @pytest.mark.asyncio
    async def test_no_sleep_without_latency(self) -> None:
        sleep = RecordingSleep()
        provider = SimulatedProvider("A", sleep=sleep)

        await provider.attempt_delivery(Message(id="m1", recipient="x@y.com"))

        assert sleep.calls == []

    def test_failure_rate_is_clamped(self) -> None:
        provider = SimulatedProvider("A", failure_rate=1.5)
        assert provider.failure_rate == 1.0
        provider.set_failure_rate(-0.2)
        assert provider.failure_rate == 0.0


class TestDefaultProviders:
    def test_primary_and_backup(self) -> None:
        a, b = default_providers()
        assert (a.name, b.name) == ("Provider A", "Provider B")
        assert a.failure_rate == pytest.approx(0.3)
        assert b.failure_rate == pytest.approx(0.2)
