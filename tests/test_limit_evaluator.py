"""Unit tests for fixed-interval hit counting."""

import threading

import pytest

from throttle.adapters.store.in_memory import InMemoryCounterStore
from throttle.adapters.store.namespaced import NamespacedCounterStore, StoreConfig
from throttle.services.limit_evaluator import (
    LimitEvaluator,
    expiration_key,
    is_exceeded,
    remaining,
)


def _store(clock, backend=None) -> NamespacedCounterStore:
    config = StoreConfig(namespace="throttle", backend="memory", prefix="throttle_", duration=60)
    return NamespacedCounterStore(config, backend or InMemoryCounterStore(default_ttl=60, clock=clock))


class InterleavingStore(InMemoryCounterStore):
    """In-memory store that lines concurrent requests up at each step.

    Every request reads before any writes and every zero-initialization lands
    before any increment, forcing the initialization race the evaluator must
    tolerate.
    """

    def __init__(self, parties: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.read_barrier = threading.Barrier(parties)
        self.increment_barrier = threading.Barrier(parties)
        self.interleave = True
        self.init_attempts = 0

    def read(self, key):
        value = super().read(key)
        if self.interleave and not key.endswith("_expires"):
            self.read_barrier.wait(timeout=5)
        return value

    def increment(self, key, delta=1):
        if self.interleave:
            self.increment_barrier.wait(timeout=5)
        return super().increment(key, delta)

    def add(self, key, value, ttl=None):
        with self._lock:
            self.init_attempts += 1
            return super().add(key, value, ttl)


@pytest.mark.parametrize(
    ("limit", "count", "expected"),
    [(10, 1, 9), (10, 10, 0), (10, 11, 0), (0, 1, 0), (3, 0, 3)],
)
def test_remaining_is_floored_at_zero(limit, count, expected) -> None:
    assert remaining(limit, count) == expected


def test_is_exceeded_only_after_limit() -> None:
    assert is_exceeded(10, 10) is False
    assert is_exceeded(10, 11) is True
    assert is_exceeded(0, 1) is True


def test_first_touch_initializes_counter_and_expiration(clock) -> None:
    store = _store(clock)
    evaluator = LimitEvaluator(store, interval=60, clock=clock)

    assert evaluator.touch("1.2.3.4") == 1
    assert store.read("1.2.3.4") == 1
    assert store.read(expiration_key("1.2.3.4")) == int(clock()) + 60
    assert evaluator.reset_at("1.2.3.4") == int(clock()) + 60


def test_touch_counts_within_interval(clock) -> None:
    evaluator = LimitEvaluator(_store(clock), interval=60, clock=clock)

    counts = [evaluator.touch("1.2.3.4") for _ in range(5)]

    assert counts == [1, 2, 3, 4, 5]


def test_zero_initialization_never_resets_running_counter(clock) -> None:
    store = _store(clock)
    evaluator = LimitEvaluator(store, interval=60, clock=clock)
    evaluator.touch("1.2.3.4")
    evaluator.touch("1.2.3.4")
    reset = evaluator.reset_at("1.2.3.4")

    clock.advance(30)

    assert evaluator.touch("1.2.3.4") == 3
    assert evaluator.reset_at("1.2.3.4") == reset


def test_new_interval_starts_after_ttl_eviction(clock) -> None:
    evaluator = LimitEvaluator(_store(clock), interval=60, clock=clock)
    for _ in range(3):
        evaluator.touch("1.2.3.4")
    first_reset = evaluator.reset_at("1.2.3.4")

    clock.advance(60)

    assert evaluator.touch("1.2.3.4") == 1
    assert evaluator.reset_at("1.2.3.4") == first_reset + 60


def test_identifiers_have_separate_counters(clock) -> None:
    evaluator = LimitEvaluator(_store(clock), interval=60, clock=clock)

    evaluator.touch("1.2.3.4")
    evaluator.touch("1.2.3.4")

    assert evaluator.touch("5.6.7.8") == 1


def test_concurrent_first_requests_never_share_a_count(clock) -> None:
    parties = 4
    backend = InterleavingStore(parties, default_ttl=60, clock=clock)
    evaluator = LimitEvaluator(_store(clock, backend), interval=60, clock=clock)
    results: list[int] = []
    results_lock = threading.Lock()

    def worker() -> None:
        count = evaluator.touch("1.2.3.4")
        with results_lock:
            results.append(count)

    threads = [threading.Thread(target=worker) for _ in range(parties)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    backend.interleave = False

    # Every request saw an absent counter and tried to initialize it ...
    assert backend.init_attempts == parties
    # ... yet the atomic increments still hand out distinct values.
    assert sorted(results) == [1, 2, 3, 4]
    assert backend.read("throttle_1.2.3.4") == parties


class StaleReadStore(InMemoryCounterStore):
    """Store whose reads never see the counter, as if every read lost a race."""

    def read(self, key):
        if key.endswith("_expires"):
            return super().read(key)
        return None


def test_late_initialization_never_resets_counter(clock) -> None:
    backend = StaleReadStore(default_ttl=60, clock=clock)
    evaluator = LimitEvaluator(_store(clock, backend), interval=60, clock=clock)

    first = evaluator.touch("1.2.3.4")
    reset = evaluator.reset_at("1.2.3.4")
    clock.advance(10)
    counts = [first] + [evaluator.touch("1.2.3.4") for _ in range(3)]

    assert counts == [1, 2, 3, 4]
    assert evaluator.reset_at("1.2.3.4") == reset


class ExpiringAfterReadStore(InMemoryCounterStore):
    """Store that lets the interval run out right after the next counter read."""

    def __init__(self, clock, **kwargs) -> None:
        super().__init__(clock=clock, **kwargs)
        self.fake_clock = clock
        self.expire_after_read = False

    def read(self, key):
        value = super().read(key)
        if self.expire_after_read and not key.endswith("_expires"):
            self.expire_after_read = False
            self.fake_clock.advance(60)
        return value


def test_counter_expiring_before_increment_starts_new_reset(clock) -> None:
    backend = ExpiringAfterReadStore(clock, default_ttl=60)
    evaluator = LimitEvaluator(_store(clock, backend), interval=60, clock=clock)
    evaluator.touch("1.2.3.4")
    clock.advance(50)

    backend.expire_after_read = True
    count = evaluator.touch("1.2.3.4")
    reset = evaluator.reset_at("1.2.3.4")

    assert count == 1
    assert reset == int(clock()) + 60

    resets = []
    for _ in range(3):
        clock.advance(10)
        evaluator.touch("1.2.3.4")
        resets.append(evaluator.reset_at("1.2.3.4"))

    assert resets == [reset, reset, reset]
    assert backend.read("throttle_1.2.3.4") == 4
