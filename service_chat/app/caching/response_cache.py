"""
TTL response cache for the chat gateway.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger


DEFAULT_REPLY_TTL = 300
DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class CacheEntry:
    """A stored reply and the instant after which it must not be served."""

    value: str
    expires_at: float


class ResponseCache:
    """In-memory reply cache keyed by conversation fingerprint.

    Expiry is lazy: an entry past ``expires_at`` is deleted by the lookup
    that finds it. Entries are kept in LRU order and capped at
    ``max_entries``; expired entries are purged before live ones are evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_REPLY_TTL,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self.logger = get_logger("chat.cache")

    def lookup(self, fingerprint: str) -> Optional[str]:
        """Get a cached reply, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() > entry.expires_at:
                del self._entries[fingerprint]
                self._misses += 1
                self.logger.debug("Cache entry expired", key_length=len(fingerprint))
                return None

            self._entries.move_to_end(fingerprint)
            self._hits += 1
            return entry.value

    def store(self, fingerprint: str, value: str) -> None:
        """Cache a reply, replacing any existing entry for the fingerprint."""
        with self._lock:
            now = self._clock()
            if fingerprint in self._entries:
                del self._entries[fingerprint]
            else:
                self._make_room(now)
            self._entries[fingerprint] = CacheEntry(value=value, expires_at=now + self.ttl_seconds)

        self.logger.debug("Cached reply", key_length=len(fingerprint), ttl=self.ttl_seconds)

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()

        self.logger.info("Cache cleared", entries=removed)
        return removed

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_ratio": round(self._hits / total, 4) if total else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def _make_room(self, now: float) -> None:
        # Caller holds the lock.
        if len(self._entries) < self.max_entries:
            return

        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]

        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
            self._evictions += 1
