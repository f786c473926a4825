"""
Fixed-window rate limiter for the chat gateway.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger


@dataclass
class ClientWindowRecord:
    """Requests observed for one client since ``window_start``."""

    count: int
    window_start: float


class FixedWindowRateLimiter:
    """Per-client fixed-window request counter.

    Windows are discrete and non-overlapping, so a burst straddling a
    rollover can admit up to twice ``max_requests`` in a short span.
    Records are never reset mid-window; they are replaced wholesale once the
    window has elapsed. The record map is capped at ``max_clients``: stale
    records are swept first, then the record with the oldest window goes.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        *,
        max_clients: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._clock = clock
        self._records: Dict[str, ClientWindowRecord] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("chat.rate_limiter")

    def allow(self, client_id: str) -> bool:
        """Count a request for ``client_id`` and report whether it is within budget."""
        with self._lock:
            now = self._clock()
            record = self._records.get(client_id)

            if record is None or now - record.window_start > self.window_seconds:
                if record is None:
                    self._make_room(now)
                self._records[client_id] = ClientWindowRecord(count=1, window_start=now)
                return True

            record.count += 1
            allowed = record.count <= self.max_requests

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=record.count,
                limit=self.max_requests,
            )
        return allowed

    def status(self, client_id: str) -> Dict[str, Any]:
        """Get current rate limit status for a client."""
        with self._lock:
            now = self._clock()
            record = self._records.get(client_id)
            if record is None or now - record.window_start > self.window_seconds:
                current_count = 0
                reset_in = self.window_seconds
            else:
                current_count = record.count
                reset_in = max(0.0, self.window_seconds - (now - record.window_start))

        return {
            "current_count": current_count,
            "limit": self.max_requests,
            "remaining": max(0, self.max_requests - current_count),
            "reset_in_seconds": int(round(reset_in)),
        }

    def reset(self, client_id: str) -> bool:
        """Forget the record for a client. Returns True if one existed."""
        with self._lock:
            removed = self._records.pop(client_id, None) is not None

        if removed:
            self.logger.info("Rate limit reset", client_id=client_id)
        return removed

    def get_record(self, client_id: str) -> Optional[ClientWindowRecord]:
        """Return a copy of the client's window record, if any."""
        with self._lock:
            record = self._records.get(client_id)
            if record is None:
                return None
            return ClientWindowRecord(count=record.count, window_start=record.window_start)

    def stats(self) -> Dict[str, Any]:
        """Get global rate limiting statistics."""
        with self._lock:
            total_clients = len(self._records)
            total_requests = sum(record.count for record in self._records.values())

        return {
            "total_clients": total_clients,
            "total_requests": total_requests,
            "average_requests_per_client": total_requests / max(1, total_clients),
            "limit": self.max_requests,
            "window_seconds": self.window_seconds,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _make_room(self, now: float) -> None:
        # Caller holds the lock.
        if len(self._records) < self.max_clients:
            return

        stale = [
            client_id
            for client_id, record in self._records.items()
            if now - record.window_start > self.window_seconds
        ]
        for client_id in stale:
            del self._records[client_id]

        evicted = 0
        while len(self._records) >= self.max_clients:
            oldest = min(self._records, key=lambda key: self._records[key].window_start)
            del self._records[oldest]
            evicted += 1

        self.logger.debug(
            "Rate limiter records pruned",
            stale_removed=len(stale),
            evicted=evicted,
            tracked=len(self._records),
        )
