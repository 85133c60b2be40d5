"""In-memory TTL counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so increments are atomic.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from throttle.adapters.store.base import AbstractCounterStore

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping values in a dict with lazy TTL eviction.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits. Use the Redis store for shared counters.
    """

    def __init__(
        self,
        *,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            default_ttl: Expiration applied when no explicit ttl is given.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If default_ttl is not positive.
        """
        if default_ttl is not None and default_ttl < 1:
            raise ValueError("default_ttl must be >= 1")

        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(default_ttl={self.default_ttl}, size={len(self._entries)})"

    def _expires_at(self, ttl: int | None) -> float | None:
        ttl = ttl if ttl is not None else self.default_ttl
        return None if ttl is None else self._clock() + ttl

    def _live_entry_locked(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug("store.evicted", extra={"store_key_len": len(key)})
            return None
        return entry

    def read(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return None if entry is None else entry.value

    def write(self, key: str, value: Any, ttl: int | None = None) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._expires_at(ttl))

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        with self._lock:
            if self._live_entry_locked(key) is not None:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._expires_at(ttl))
            return True

    def increment(self, key: str, delta: int = 1) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                entry = _Entry(value=0, expires_at=self._expires_at(None))
                self._entries[key] = entry
            entry.value = int(entry.value) + delta
            return entry.value
