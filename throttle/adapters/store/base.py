"""Counter store interfaces.

The throttle engine depends on this abstraction (not a concrete backend) so
the counters can live in whichever cache technology the application already
runs.

Backends MUST implement ``increment`` atomically per key. A backend whose
increment is a read-modify-write from the client side breaks the rate-limit
guarantee under concurrent requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractCounterStore(ABC):
    """Interface for key/value counter stores with TTL expiration.

    Attributes:
        default_ttl: Seconds applied to writes without an explicit ttl and to
            keys created implicitly by ``increment`` (None: never expire).
    """

    default_ttl: int | None = None

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the stored value, or None when absent or expired."""
        raise NotImplementedError

    @abstractmethod
    def write(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Unconditionally store ``value`` under ``key``.

        Args:
            key: Storage key.
            value: Value to store.
            ttl: Expiration in seconds; falls back to ``default_ttl``.
        """
        raise NotImplementedError

    @abstractmethod
    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` only if ``key`` is absent (or expired).

        Returns:
            bool: True if the value was stored.
        """
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str, delta: int = 1) -> int:
        """Atomically add ``delta`` to the integer under ``key``.

        Callers are expected to initialize the key first. If it vanished in the
        meantime (TTL raced the caller) it is recreated from zero with
        ``default_ttl`` so no counter outlives its interval.

        Returns:
            int: The post-increment value.
        """
        raise NotImplementedError
