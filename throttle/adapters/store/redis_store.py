"""Redis-backed counter store.

Counters are plain Redis strings: ``SET key value EX ttl`` for writes and
``INCRBY`` for increments, which Redis executes atomically. The increment and
the ``EXPIRE ... NX`` covering a recreated key run in one MULTI/EXEC block
(Redis 7.0+). This store is shared by every worker and host pointing at the
same Redis database.
"""

from __future__ import annotations

import logging
from typing import Any

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from throttle.adapters.store.base import AbstractCounterStore
from throttle.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (RedisConnectionError, RedisTimeoutError)


class RedisCounterStore(AbstractCounterStore):
    """Counter store on top of a synchronous redis-py client."""

    def __init__(self, client: redis.Redis, *, default_ttl: int | None = None) -> None:
        if default_ttl is not None and default_ttl < 1:
            raise ValueError("default_ttl must be >= 1")

        self._client = client
        self.default_ttl = default_ttl

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        default_ttl: int | None = None,
        socket_timeout: float | None = None,
    ) -> "RedisCounterStore":
        """Build a store from a ``redis://`` URL."""
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
        )
        return cls(client, default_ttl=default_ttl)

    def _unavailable(self, operation: str, exc: Exception) -> StoreUnavailableError:
        logger.error(
            "store.unavailable",
            extra={"backend": "redis", "operation": operation, "error_type": type(exc).__name__},
        )
        return StoreUnavailableError(
            code="store_unavailable",
            message="Rate limit store is unavailable",
            details={"backend": "redis", "hint": str(exc)},
        )

    def read(self, key: str) -> Any | None:
        try:
            return self._client.get(key)
        except _UNAVAILABLE_ERRORS as exc:
            raise self._unavailable("read", exc) from exc

    def write(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self.default_ttl
        try:
            self._client.set(key, value, ex=ttl)
        except _UNAVAILABLE_ERRORS as exc:
            raise self._unavailable("write", exc) from exc

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        ttl = ttl if ttl is not None else self.default_ttl
        try:
            return bool(self._client.set(key, value, ex=ttl, nx=True))
        except _UNAVAILABLE_ERRORS as exc:
            raise self._unavailable("add", exc) from exc

    def increment(self, key: str, delta: int = 1) -> int:
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.incrby(key, delta)
            if self.default_ttl is not None:
                # NX: only a key INCRBY just created (expired after the caller's read) gets a TTL.
                pipe.expire(key, self.default_ttl, nx=True)
            value = pipe.execute()[0]
        except _UNAVAILABLE_ERRORS as exc:
            raise self._unavailable("increment", exc) from exc

        return int(value)
