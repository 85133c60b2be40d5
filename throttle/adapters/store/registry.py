"""Registry of namespaced counter stores.

The registry is an explicitly owned object (one per application) instead of a
process-wide cache configuration. A namespace is configured the first time it
is requested, using the same backend technology as the application's default
cache, and reused afterwards.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from throttle.adapters.store.base import AbstractCounterStore
from throttle.adapters.store.in_memory import InMemoryCounterStore
from throttle.adapters.store.namespaced import NamespacedCounterStore, StoreConfig
from throttle.adapters.store.redis_store import RedisCounterStore
from throttle.core.config import CacheSettings
from throttle.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Builds a backend for (default_ttl) seconds.
BackendFactory = Callable[[int], AbstractCounterStore]

_CLASS_SUFFIXES = ("CounterStore", "Store", "Engine")


def backend_short_name(engine: str) -> str:
    """Normalise a backend setting into its short name.

    Short names are returned as-is; dotted class paths are reduced to the class
    name without its ``CounterStore``/``Store``/``Engine`` suffix.

    Examples:
        >>> backend_short_name("redis")
        'redis'
        >>> backend_short_name("throttle.adapters.store.redis_store.RedisCounterStore")
        'redis'
        >>> backend_short_name("InMemoryCounterStore")
        'inmemory'
    """
    engine = str(engine).strip()
    name = engine.rsplit(".", 1)[-1]
    for suffix in _CLASS_SUFFIXES:
        if name.endswith(suffix) and name != suffix:
            name = name[: -len(suffix)]
            break
    return name.lower()


def default_backend_factories(
    cache_settings: CacheSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> dict[str, BackendFactory]:
    """Backend factories known to the application, keyed by short name."""

    def memory(ttl: int) -> AbstractCounterStore:
        return InMemoryCounterStore(default_ttl=ttl, clock=clock)

    def redis_backend(ttl: int) -> AbstractCounterStore:
        return RedisCounterStore.from_url(
            cache_settings.url,
            default_ttl=ttl,
            socket_timeout=cache_settings.socket_timeout_seconds,
        )

    return {
        "memory": memory,
        "inmemory": memory,
        "redis": redis_backend,
    }


class StoreRegistry:
    """Creates one NamespacedCounterStore per namespace, lazily.

    Attributes:
        default_backend: Short name of the application's default cache backend.
    """

    def __init__(
        self,
        default_backend: str,
        factories: dict[str, BackendFactory],
    ) -> None:
        self.default_backend = backend_short_name(default_backend)
        self._factories = factories
        self._stores: dict[str, NamespacedCounterStore] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        cache_settings: CacheSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "StoreRegistry":
        return cls(
            cache_settings.backend,
            default_backend_factories(cache_settings, clock=clock),
        )

    def configured(self, namespace: str) -> StoreConfig | None:
        """Return the configuration of a namespace, if it was created."""
        store = self._stores.get(namespace)
        return store.config if store else None

    def get(self, namespace: str, duration: int) -> NamespacedCounterStore:
        """Return the store for ``namespace``, creating it on first use.

        The first caller fixes the namespace duration. Later callers asking for
        a different one share the existing store, and a warning is logged.

        Args:
            namespace: Configuration name; also the key prefix.
            duration: Default TTL in seconds for the namespace.

        Raises:
            ConfigurationError: If the default backend is unknown.
        """
        store = self._stores.get(namespace)
        if store is None:
            with self._lock:
                store = self._stores.get(namespace)
                if store is None:
                    store = self._create(namespace, duration)
                    self._stores[namespace] = store
                    return store

        if store.config.duration != duration:
            logger.warning(
                "store.duration_mismatch",
                extra={
                    "namespace": namespace,
                    "duration_s": store.config.duration,
                    "requested_duration_s": duration,
                },
            )
        return store

    def _create(self, namespace: str, duration: int) -> NamespacedCounterStore:
        factory = self._factories.get(self.default_backend)
        if factory is None:
            raise ConfigurationError(
                code="throttle_unknown_backend",
                message=f"Unknown cache backend {self.default_backend!r}",
                details={
                    "option": "backend",
                    "value": self.default_backend,
                    "hint": "Use one of: " + ", ".join(sorted(self._factories)),
                },
            )

        config = StoreConfig(
            namespace=namespace,
            backend=self.default_backend,
            prefix=f"{namespace}_",
            duration=duration,
        )
        logger.info(
            "store.registered",
            extra={"namespace": namespace, "backend": config.backend, "duration_s": duration},
        )
        return NamespacedCounterStore(config, factory(duration))
