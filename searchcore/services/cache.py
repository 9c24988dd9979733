"""
TTL cache for base (pre-personalization) search responses.
- Keys combine the operation kind with the trimmed, lowercased query
- Expired entries are never returned; a periodic sweep drops them on access
- A single lock serializes writers, so the last write for a key wins
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("cache")


def make_key(kind: str, query: str) -> str:
    return f"{kind}_{query.strip().lower()}"


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class ResultCache:
    DEFAULT_TTL_SECONDS = 300.0
    CHECK_PERIOD_SECONDS = 600.0

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        check_period_seconds: float = CHECK_PERIOD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._last_sweep = clock()

    def get(self, kind: str, query: str) -> Optional[Any]:
        key = make_key(kind, query)
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(now):
                del self._entries[key]
                return None
            return entry.value

    def set(self, kind: str, query: str, value: Any, ttl: Optional[float] = None) -> None:
        key = make_key(kind, query)
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            self._entries[key] = CacheEntry(
                value=value, inserted_at=now, ttl=self.ttl_seconds if ttl is None else ttl
            )

    def _maybe_sweep(self, now: float) -> None:
        # Caller holds the lock.
        if now - self._last_sweep < self.check_period_seconds:
            return
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.info("Cache sweep removed %d expired entries", len(expired))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
