"""Message dispatcher — the entry point of the delivery engine.

Composes the ledger, per-provider circuit breakers, the shared token bucket,
the delivery orchestrator and the deferred queue:

    submit → idempotency check → all-breakers-open check → admission check
           → orchestrator (retry + fallback) → ledger update → outcome

``submit`` never raises for delivery-level failures; every path ends in a
recorded status and a returned ``DeliveryOutcome``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Awaitable, Callable

import structlog

from courier.application.deferred_queue import DeferredQueue
from courier.application.dtos import BreakerSnapshot, DispatchStatistics
from courier.application.ledger import DeliveryLedger
from courier.application.orchestrator import DeliveryOrchestrator
from courier.domain.entities import Message, MessageStatus
from courier.domain.enums import FailureReason, MessageState
from courier.domain.exceptions import ConfigurationError
from courier.domain.value_objects import DeliveryOutcome
from courier.ports.outbound import DeliveryProvider
from courier.shared.observability import RecentEvents
from courier.shared.observability.metrics import ADMISSION_DENIALS, DELIVERIES_TOTAL
from courier.shared.resilience.circuit_breaker import CircuitBreaker, CircuitState
from courier.shared.resilience.rate_limiter import TokenBucket
from courier.shared.resilience.types import BreakerConfig, RateLimitConfig, RetryPolicy

logger = structlog.get_logger(__name__)

RECENT_EVENTS_IN_STATISTICS = 10


class MessageDispatcher:
    """Resilient, idempotent message submission across a provider chain.

    Usage::

        dispatcher = MessageDispatcher([primary, backup])
        outcome = await dispatcher.submit(Message(id="m1", recipient="x@y.com"))

    Providers are tried in the order given.
    """

    def __init__(
        self,
        providers: Sequence[DeliveryProvider],
        *,
        retry: RetryPolicy | None = None,
        rate_limit: RateLimitConfig | None = None,
        breaker: BreakerConfig | None = None,
        queue_pause_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        recent_events: RecentEvents | None = None,
    ) -> None:
        if not providers:
            raise ConfigurationError("at least one delivery provider is required")
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"provider names must be unique: {names}")

        self._providers = list(providers)
        self._recent_events = recent_events
        self._ledger = DeliveryLedger()
        self._bucket = TokenBucket(rate_limit, clock=clock)
        self._breakers: dict[str, CircuitBreaker] = {
            name: CircuitBreaker(name, breaker, clock=clock) for name in names
        }
        self._orchestrator = DeliveryOrchestrator(
            self._providers,
            self._breakers,
            self._ledger,
            retry or RetryPolicy(),
            sleep=sleep,
        )
        self._queue = DeferredQueue(
            self._ledger,
            self._bucket,
            self._all_breakers_open,
            self._resubmit,
            pause_interval=queue_pause_interval,
            sleep=sleep,
        )
        self._inflight: dict[str, asyncio.Future[DeliveryOutcome]] = {}

        logger.info("dispatcher_initialised", providers=names)

    # ── Submission ───────────────────────────────────────────
    async def submit(self, message: Message) -> DeliveryOutcome:
        """Deliver ``message`` or park it in the deferred queue."""
        return await self._submit(message, admitted=False)

    async def _resubmit(self, message: Message) -> DeliveryOutcome:
        # The deferred queue has already taken a token for this message.
        return await self._submit(message, admitted=True)

    async def _submit(self, message: Message, *, admitted: bool) -> DeliveryOutcome:
        completed = self._ledger.completed_outcome(message.id)
        if completed is not None:
            logger.info("message_already_sent", message_id=message.id, provider=completed.provider)
            DELIVERIES_TOTAL.labels(provider=completed.provider, status="duplicate").inc()
            return completed

        inflight = self._inflight.get(message.id)
        if inflight is not None:
            logger.info("message_in_flight", message_id=message.id)
            return await asyncio.shield(inflight)

        if self._all_breakers_open():
            logger.warning("all_circuit_breakers_open", message_id=message.id)
            self._queue.enqueue(message)
            DELIVERIES_TOTAL.labels(provider="queue", status="queued").inc()
            return DeliveryOutcome.failed(
                "queue",
                "All providers temporarily unavailable. Message queued for retry.",
                FailureReason.ALL_BREAKERS_OPEN,
            )

        if not admitted and not self._bucket.try_acquire():
            wait = self._bucket.time_until_next_token()
            ADMISSION_DENIALS.inc()
            logger.warning("rate_limit_exceeded", message_id=message.id, wait_s=wait)
            self._queue.enqueue(message)
            DELIVERIES_TOTAL.labels(provider="queue", status="queued").inc()
            return DeliveryOutcome.failed(
                "queue",
                f"Rate limit exceeded. Queued for processing in {wait:.3f}s",
                FailureReason.RATE_LIMITED,
            )

        future: asyncio.Future[DeliveryOutcome] = asyncio.get_running_loop().create_future()
        self._inflight[message.id] = future
        try:
            outcome = await self._dispatch(message)
            future.set_result(outcome)
            return outcome
        finally:
            del self._inflight[message.id]
            if not future.done():
                future.cancel()

    async def _dispatch(self, message: Message) -> DeliveryOutcome:
        self._ledger.mark_sending(message)
        try:
            outcome = await self._orchestrator.deliver(message)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            logger.exception("message_delivery_crashed", message_id=message.id, error=error)
            outcome = DeliveryOutcome.failed("none", error, FailureReason.UNEXPECTED_ERROR)

        if outcome.success:
            status = self._ledger.mark_sent(message.id, outcome)
            DELIVERIES_TOTAL.labels(provider=outcome.provider, status="sent").inc()
            logger.info(
                "message_delivered",
                message_id=message.id,
                provider=outcome.provider,
                receipt_id=outcome.receipt_id,
                attempts=status.attempts,
            )
        else:
            status = self._ledger.mark_failed(message.id, outcome.error or "Unknown error")
            DELIVERIES_TOTAL.labels(provider=outcome.provider, status="failed").inc()
            logger.error(
                "message_delivery_failed",
                message_id=message.id,
                error=outcome.error,
                reason=outcome.reason.value if outcome.reason else None,
                attempts=status.attempts,
            )
        return outcome

    # ── Observation ──────────────────────────────────────────
    def status_of(self, message_id: str) -> MessageStatus | None:
        return self._ledger.get(message_id)

    def all_statuses(self) -> list[MessageStatus]:
        return self._ledger.all()

    def statistics(self) -> DispatchStatistics:
        counts = self._ledger.counts_by_state()
        return DispatchStatistics(
            total=sum(counts.values()),
            pending=counts[MessageState.PENDING],
            queued=counts[MessageState.QUEUED],
            sending=counts[MessageState.SENDING],
            sent=counts[MessageState.SENT],
            failed=counts[MessageState.FAILED],
            queue_size=self._queue.size,
            available_tokens=self._bucket.available_tokens(),
            breakers={
                name: BreakerSnapshot(
                    state=cb.state.value,
                    failures=cb.failure_count,
                    recent_failures=cb.recent_failures,
                )
                for name, cb in self._breakers.items()
            },
            recent_events=(
                self._recent_events.tail(RECENT_EVENTS_IN_STATISTICS) if self._recent_events else []
            ),
        )

    def breaker_state(self, provider: str) -> CircuitState:
        return self._breakers[provider].state

    @property
    def queue(self) -> DeferredQueue:
        return self._queue

    # ── Administration ───────────────────────────────────────
    def reset_breakers(self) -> None:
        """Force every breaker back to CLOSED."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info("circuit_breakers_reset", providers=list(self._breakers))

    def clear(self) -> None:
        """Wipe all in-memory bookkeeping (testing / administration)."""
        self._ledger.clear()
        self._queue.clear()
        self._bucket.reset()
        self.reset_breakers()
        if self._recent_events is not None:
            self._recent_events.clear()
        logger.info("dispatcher_cleared")

    async def aclose(self) -> None:
        """Stop the background drain.  Queued messages are left in place."""
        await self._queue.aclose()

    # ── Internals ────────────────────────────────────────────
    def _all_breakers_open(self) -> bool:
        return not any(cb.allows_request() for cb in self._breakers.values())
