"""
Bounded-concurrency admission gate in front of the completion service.
"""

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class AdmissionGate:
    """Caps the number of upstream calls in flight.

    Waiters park on a future that ``release`` resolves, so a freed slot is
    noticed immediately. ``poll_interval`` bounds each park so a waiter
    re-checks even if its wake-up was lost (for instance when the woken
    waiter was cancelled). There is no FIFO guarantee: a caller arriving
    while a woken waiter is still scheduled may take the slot first.

    Only one event loop may drive a gate; ``acquire`` and ``release`` are
    not thread-safe.
    """

    def __init__(
        self,
        limit: int = 2,
        poll_interval: float = 0.3,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.poll_interval = poll_interval
        self.metrics = metrics
        self.logger = get_logger("chat.admission")

        self._in_flight = 0
        self._peak_in_flight = 0
        self._admitted = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> float:
        """Wait for a free slot and reserve it. Returns seconds spent waiting."""
        start = time.monotonic()
        loop = asyncio.get_running_loop()

        while self._in_flight >= self.limit:
            waiter = loop.create_future()
            self._waiters.append(waiter)
            try:
                await asyncio.wait({waiter}, timeout=self.poll_interval)
            finally:
                if not waiter.done():
                    waiter.cancel()
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass

        self._in_flight += 1
        self._admitted += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

        waited = time.monotonic() - start
        if self.metrics:
            self.metrics.set_gauge("admission_in_flight", self._in_flight)
            self.metrics.observe_histogram("admission_wait_seconds", waited)
        if waited >= self.poll_interval:
            self.logger.info("Admission slot acquired after queueing", waited_ms=round(waited * 1000, 2))
        return waited

    def release(self) -> None:
        """Free a slot and wake one waiter. Never drives the counter below zero."""
        if self._in_flight > 0:
            self._in_flight -= 1
        else:
            self.logger.warning("Admission release without a matching acquire")

        if self.metrics:
            self.metrics.set_gauge("admission_in_flight", self._in_flight)

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                break

    @asynccontextmanager
    async def slot(self) -> AsyncIterator["AdmissionGate"]:
        """Hold a slot for the duration of the block; released on every exit path."""
        await self.acquire()
        try:
            yield self
        finally:
            self.release()

    def stats(self) -> Dict[str, Any]:
        """Get admission statistics."""
        return {
            "in_flight": self._in_flight,
            "limit": self.limit,
            "waiting": self.waiting,
            "admitted_total": self._admitted,
            "peak_in_flight": self._peak_in_flight,
            "poll_interval_seconds": self.poll_interval,
        }
