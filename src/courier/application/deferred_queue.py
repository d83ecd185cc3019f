"""Deferred queue — FIFO parking for messages that could not be dispatched.

Messages land here when admission is denied or every breaker is open.  A
single background task drains the queue head-to-tail: it waits while every
breaker is open, waits for a token when the bucket is empty, and only then
pops the head and hands it back to the dispatcher.  The drain stops when the
queue empties; the next enqueue starts a new one.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from collections import deque
from typing import Awaitable, Callable

import structlog

from courier.application.ledger import DeliveryLedger
from courier.domain.entities import Message
from courier.domain.value_objects import DeliveryOutcome
from courier.shared.observability.metrics import QUEUE_DEPTH
from courier.shared.resilience.rate_limiter import TokenBucket

logger = structlog.get_logger(__name__)

Resubmit = Callable[[Message], Awaitable[DeliveryOutcome]]


class DeferredQueue:
    """FIFO of messages awaiting re-submission, drained by one async task.

    ``resubmit`` is called for each popped message after this queue has
    already taken an admission token on its behalf.
    """

    def __init__(
        self,
        ledger: DeliveryLedger,
        admission: TokenBucket,
        all_breakers_open: Callable[[], bool],
        resubmit: Resubmit,
        *,
        pause_interval: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._admission = admission
        self._all_breakers_open = all_breakers_open
        self._resubmit = resubmit
        self._pause_interval = pause_interval
        self._sleep = sleep

        self._items: deque[Message] = deque()
        self._draining = False
        self._task: asyncio.Task[None] | None = None
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    def pending_ids(self) -> list[str]:
        with self._lock:
            return [m.id for m in self._items]

    def enqueue(self, message: Message) -> None:
        """Park ``message`` at the tail and make sure a drain is running.

        Must be called from a running event loop.
        """
        self._ledger.mark_queued(message)
        with self._lock:
            self._items.append(message)
            depth = len(self._items)
        QUEUE_DEPTH.set(depth)
        logger.info("message_queued", message_id=message.id, queue_size=depth)
        self._ensure_draining()

    async def join(self) -> None:
        """Wait for the current drain (if any) to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def aclose(self) -> None:
        """Stop draining.  Queued messages stay queued."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        with self._lock:
            self._draining = False

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
        QUEUE_DEPTH.set(0)

    # ── Drain loop ───────────────────────────────────────────
    def _ensure_draining(self) -> None:
        with self._lock:
            if self._draining or not self._items:
                return
            self._draining = True
        self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        logger.info("queue_drain_started", queue_size=self.size)
        paused = False
        try:
            while True:
                with self._lock:
                    if not self._items:
                        self._draining = False
                        break

                if self._all_breakers_open():
                    if not paused:
                        paused = True
                        logger.warning("queue_drain_paused", queue_size=self.size, pause_s=self._pause_interval)
                    await self._sleep(self._pause_interval)
                    continue
                if paused:
                    paused = False
                    logger.info("queue_drain_resumed", queue_size=self.size)

                if not self._admission.try_acquire():
                    await self._sleep(self._admission.time_until_next_token())
                    continue

                with self._lock:
                    message = self._items.popleft() if self._items else None
                    depth = len(self._items)
                QUEUE_DEPTH.set(depth)
                if message is None:
                    continue

                try:
                    await self._resubmit(message)
                except Exception:
                    logger.exception("queued_message_resubmit_failed", message_id=message.id)
        finally:
            with self._lock:
                self._draining = False
        logger.info("queue_drain_completed")
