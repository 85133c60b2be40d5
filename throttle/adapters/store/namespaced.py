"""Namespaced façade over a counter store backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from throttle.adapters.store.base import AbstractCounterStore


@dataclass(frozen=True)
class StoreConfig:
    """Counter store configuration for one namespace.

    Attributes:
        namespace: Configuration name (e.g. "throttle").
        backend: Backend short name shared with the default cache.
        prefix: Prepended to every key ("<namespace>_").
        duration: Default TTL in seconds (the throttle interval).
    """

    namespace: str
    backend: str
    prefix: str
    duration: int


class NamespacedCounterStore:
    """Prefixes keys and applies the namespace duration to writes.

    Exposes the read / write / add / increment operations the limit evaluator uses.
    """

    def __init__(self, config: StoreConfig, backend: AbstractCounterStore) -> None:
        self.config = config
        self._backend = backend

    @property
    def backend(self) -> AbstractCounterStore:
        return self._backend

    def key(self, key: str) -> str:
        return f"{self.config.prefix}{key}"

    def read(self, key: str) -> Any | None:
        return self._backend.read(self.key(key))

    def write(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._backend.write(self.key(key), value, ttl if ttl is not None else self.config.duration)

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return self._backend.add(self.key(key), value, ttl if ttl is not None else self.config.duration)

    def increment(self, key: str, delta: int = 1) -> int:
        return self._backend.increment(self.key(key), delta)
