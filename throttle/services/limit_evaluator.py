"""Fixed-interval hit counting.

Each identifier owns two records in the counter store:

- ``<identifier>``: hit counter for the current interval.
- ``<identifier>_expires``: epoch second at which the interval ends, kept so
  clients get an accurate reset time regardless of the store's TTL precision.

Both are written by the request that finds the counter absent and wins the
set-if-absent race; the counter is then incremented atomically by the store.
A counter that expired between the read and the increment comes back at 1,
and the request holding that 1 writes the new expiration record.
Counting happens before the limit check, so with ``limit=N`` exactly N
requests pass and the (N+1)th is rejected with a counter of N+1.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from throttle.adapters.store.namespaced import NamespacedCounterStore
from throttle.core.interval import next_expiration
from throttle.core.logging import hash_identifier

logger = logging.getLogger(__name__)

EXPIRATION_SUFFIX = "expires"


def expiration_key(identifier: str) -> str:
    """Return the store key holding the interval end epoch of an identifier."""
    return f"{identifier}_{EXPIRATION_SUFFIX}"


def remaining(limit: int, count: int) -> int:
    """Hits left before the limit is reached, never negative."""
    return max(0, limit - count)


def is_exceeded(limit: int, count: int) -> bool:
    return count > limit


class LimitEvaluator:
    """Reads and increments per-identifier counters in a namespaced store."""

    def __init__(
        self,
        store: NamespacedCounterStore,
        *,
        interval: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            store: Namespaced counter store.
            interval: Interval length in seconds (also the record TTL).
            clock: Time source function returning UNIX time in seconds.
        """
        self._store = store
        self._interval = interval
        self._clock = clock

    def touch(self, identifier: str) -> int:
        """Count one hit for ``identifier`` and return the new counter value.

        The zero-initialization is not atomic with the increment. Concurrent
        first requests may all try to initialize; only one wins, so a late
        initialization never resets a counter another request already bumped.

        If the counter expires between the read and the increment, the store
        recreates it at 1 and this request starts the new interval's
        expiration record.
        """
        started = False
        if self._store.read(identifier) is None:
            started = self._start_interval(identifier, counter=True)

        count = self._store.increment(identifier, 1)
        if count == 1 and not started:
            self._start_interval(identifier, counter=False)
        return count

    def _start_interval(self, identifier: str, *, counter: bool) -> bool:
        expires_at = next_expiration(self._interval, self._clock())
        if counter and not self._store.add(identifier, 0, self._interval):
            return False

        self._store.write(expiration_key(identifier), expires_at, self._interval)
        logger.debug(
            "throttle.interval_started",
            extra={"key_hash": hash_identifier(identifier), "expires_at": expires_at},
        )
        return True

    def reset_at(self, identifier: str) -> Any | None:
        """Return the stored interval end epoch, or None if it is not (yet) stored."""
        return self._store.read(expiration_key(identifier))
