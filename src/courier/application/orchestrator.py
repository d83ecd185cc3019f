"""Delivery orchestrator — retry with backoff per provider, fallback across providers.

For one message, providers are tried in priority order.  Each provider gets
its own retry budget; every try goes through that provider's breaker, and a
breaker rejection spends a try like any other failure.  The first success
wins.  The message's ledger attempt counter grows by one before every try,
across all providers.
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Mapping, Sequence
from typing import Awaitable, Callable

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from courier.application.ledger import DeliveryLedger
from courier.domain.entities import Message
from courier.domain.enums import FailureReason
from courier.domain.exceptions import CircuitOpenError, ProviderFailureError
from courier.domain.value_objects import DeliveryOutcome
from courier.ports.outbound import DeliveryProvider
from courier.shared.observability.metrics import DELIVERY_ATTEMPTS, DELIVERY_LATENCY
from courier.shared.resilience.circuit_breaker import CircuitBreaker
from courier.shared.resilience.types import RetryPolicy

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class DeliveryOrchestrator:
    """Runs the retry + fallback algorithm for a single message."""

    def __init__(
        self,
        providers: Sequence[DeliveryProvider],
        breakers: Mapping[str, CircuitBreaker],
        ledger: DeliveryLedger,
        retry: RetryPolicy,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._providers = list(providers)
        self._breakers = breakers
        self._ledger = ledger
        self._retry = retry
        self._sleep = sleep

    async def deliver(self, message: Message) -> DeliveryOutcome:
        """Deliver ``message`` through the first provider that succeeds.

        Returns a failed outcome carrying the most recent error when every
        provider's budget is spent.  Delivery failures never raise.
        """
        errors: dict[str, str] = {}
        last_error: str | None = None

        for provider in self._providers:
            outcome = await self._try_provider(provider, message)
            if outcome.success:
                if errors:
                    logger.info(
                        "provider_failover_success",
                        message_id=message.id,
                        provider=provider.name,
                        failed_providers=list(errors),
                    )
                return outcome

            last_error = outcome.error
            errors[provider.name] = outcome.error or ""
            logger.warning(
                "provider_exhausted",
                message_id=message.id,
                provider=provider.name,
                error=outcome.error,
            )

        return DeliveryOutcome.failed(
            "none",
            last_error or "No delivery providers configured",
            FailureReason.PROVIDERS_EXHAUSTED,
        )

    # ── Provider-level retry loop ────────────────────────────
    async def _try_provider(self, provider: DeliveryProvider, message: Message) -> DeliveryOutcome:
        pid = provider.name
        breaker = self._breakers[pid]
        max_attempts = self._retry.max_attempts
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(
                multiplier=self._retry.base_delay,
                exp_base=self._retry.backoff_factor,
                max=self._retry.max_delay,
            ),
            retry=retry_if_exception_type((CircuitOpenError, ProviderFailureError)),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    total = self._ledger.record_attempt(message.id, pid)
                    DELIVERY_ATTEMPTS.labels(provider=pid).inc()
                    try:
                        return await breaker.execute(functools.partial(self._attempt_once, provider, message))
                    except (CircuitOpenError, ProviderFailureError) as exc:
                        is_last_attempt = number == max_attempts
                        logger.warning(
                            "delivery_attempt_failed",
                            message_id=message.id,
                            provider=pid,
                            attempt=number,
                            total_attempts=total,
                            error=exc.message,
                            code=exc.code,
                            is_last_attempt=is_last_attempt,
                            retry_in_s=None if is_last_attempt else self._retry.delay_for(number),
                        )
                        raise
        except CircuitOpenError as exc:
            return DeliveryOutcome.failed(pid, exc.message, FailureReason.CIRCUIT_OPEN)
        except ProviderFailureError as exc:
            return DeliveryOutcome.failed(pid, exc.reason, FailureReason.PROVIDER_FAILURE)
        raise AssertionError("retry loop ended without an outcome")  # pragma: no cover

    # ── Provider boundary ────────────────────────────────────
    async def _attempt_once(self, provider: DeliveryProvider, message: Message) -> DeliveryOutcome:
        """Call the provider once, normalising every failure to ``ProviderFailureError``."""
        start = time.monotonic()
        try:
            outcome = await provider.attempt_delivery(message)
        except Exception as exc:
            raise ProviderFailureError(provider.name, str(exc) or type(exc).__name__) from exc
        finally:
            DELIVERY_LATENCY.labels(provider=provider.name).observe(time.monotonic() - start)

        if not outcome.success:
            raise ProviderFailureError(provider.name, outcome.error or "Unknown error")
        return outcome
