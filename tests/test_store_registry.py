"""Unit tests for namespaced store creation."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from throttle.adapters.store.in_memory import InMemoryCounterStore
from throttle.adapters.store.redis_store import RedisCounterStore
from throttle.adapters.store.registry import StoreRegistry, backend_short_name
from throttle.core.config import CacheSettings
from throttle.core.errors import ConfigurationError


@pytest.mark.parametrize(
    ("engine", "expected"),
    [
        ("redis", "redis"),
        ("Memory", "memory"),
        ("throttle.adapters.store.redis_store.RedisCounterStore", "redis"),
        ("throttle.adapters.store.in_memory.InMemoryCounterStore", "inmemory"),
        ("vendor.cache.RedisEngine", "redis"),
        ("Store", "store"),
    ],
)
def test_backend_short_name(engine, expected) -> None:
    assert backend_short_name(engine) == expected


def test_creates_store_once_per_namespace(clock) -> None:
    registry = StoreRegistry.from_settings(CacheSettings(backend="memory"), clock=clock)

    assert registry.configured("throttle") is None

    first = registry.get("throttle", 60)
    second = registry.get("throttle", 3600)

    assert first is second
    assert isinstance(first.backend, InMemoryCounterStore)
    config = registry.configured("throttle")
    assert config.backend == "memory"
    assert config.prefix == "throttle_"
    assert config.duration == 60


def test_reusing_namespace_with_other_duration_logs_warning(clock, caplog) -> None:
    registry = StoreRegistry.from_settings(CacheSettings(backend="memory"), clock=clock)
    first = registry.get("throttle", 60)

    with caplog.at_level(logging.WARNING, logger="throttle.adapters.store.registry"):
        assert registry.get("throttle", 60) is first
        assert not caplog.records

        assert registry.get("throttle", 3600) is first

    (record,) = caplog.records
    assert record.getMessage() == "store.duration_mismatch"
    assert record.duration_s == 60
    assert record.requested_duration_s == 3600
    assert first.backend.default_ttl == 60


def test_namespaces_are_isolated(clock) -> None:
    registry = StoreRegistry.from_settings(CacheSettings(backend="memory"), clock=clock)

    api = registry.get("throttle", 60)
    login = registry.get("login", 60)
    api.write("1.2.3.4", 3)

    assert api is not login
    assert login.read("1.2.3.4") is None


def test_namespaced_store_prefixes_keys_and_applies_duration(clock) -> None:
    backend = MagicMock()
    registry = StoreRegistry("memory", {"memory": lambda ttl: backend})
    store = registry.get("throttle", 60)

    store.add("1.2.3.4", 0)
    store.write("1.2.3.4_expires", 1_700_000_060, 30)
    store.increment("1.2.3.4")
    store.read("1.2.3.4")

    backend.add.assert_called_once_with("throttle_1.2.3.4", 0, 60)
    backend.write.assert_called_once_with("throttle_1.2.3.4_expires", 1_700_000_060, 30)
    backend.increment.assert_called_once_with("throttle_1.2.3.4", 1)
    backend.read.assert_called_once_with("throttle_1.2.3.4")


def test_uses_application_default_backend_technology() -> None:
    settings = CacheSettings(backend="throttle.adapters.store.redis_store.RedisCounterStore")

    with patch("throttle.adapters.store.redis_store.redis.Redis.from_url") as from_url:
        registry = StoreRegistry.from_settings(settings)
        store = registry.get("throttle", 60)

    from_url.assert_called_once()
    assert isinstance(store.backend, RedisCounterStore)
    assert store.backend.default_ttl == 60
    assert registry.configured("throttle").backend == "redis"


def test_unknown_backend_raises_configuration_error() -> None:
    registry = StoreRegistry.from_settings(CacheSettings(backend="memcached"))

    with pytest.raises(ConfigurationError) as exc_info:
        registry.get("throttle", 60)

    assert exc_info.value.code == "throttle_unknown_backend"
    assert registry.configured("throttle") is None
