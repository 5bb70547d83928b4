"""Tests for keyed instance cache identity, construction and failure behavior."""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field

import pytest

from keyed_selectors.cache import KeyedInstanceCache, selector_with_props


@dataclass
class _CountingFactory:
    calls: Counter = field(default_factory=Counter)

    def __call__(self, key: object) -> object:
        self.calls[key] += 1
        return object()


@dataclass
class _FlakyFactory:
    failures_left: int = 1
    attempts: int = 0

    def __call__(self, key: str) -> str:
        self.attempts += 1
        if self.failures_left > 0:
            self.failures_left -= 1
            raise RuntimeError(f"cannot build {key}")
        return f"unit-{key}"


def test_same_key_returns_identical_instance() -> None:
    """Repeated lookups for one key should return the very same object."""
    cache = KeyedInstanceCache(_CountingFactory())

    first = cache.get_or_create("a")
    for _ in range(5):
        assert cache.get_or_create("a") is first


def test_factory_invoked_once_per_key() -> None:
    """The factory should run exactly once per distinct key."""
    factory = _CountingFactory()
    cache = KeyedInstanceCache(factory)

    for _ in range(10):
        cache.get_or_create("a")

    assert factory.calls == Counter({"a": 1})
    assert cache.build_count == 1


def test_distinct_keys_are_independent() -> None:
    """Different keys should get different units without touching each other."""
    factory = _CountingFactory()
    cache = KeyedInstanceCache(factory)

    unit_a = cache.get_or_create("a")
    assert factory.calls["b"] == 0

    unit_b = cache.get_or_create(555)
    assert unit_a is not unit_b
    assert factory.calls == Counter({"a": 1, 555: 1})

    assert cache.get_or_create("a") is unit_a
    assert factory.calls == Counter({"a": 1, 555: 1})


def test_factory_failure_is_not_cached() -> None:
    """A raising factory should propagate and be retried on the next call."""
    factory = _FlakyFactory(failures_left=1)
    cache = KeyedInstanceCache(factory)

    with pytest.raises(RuntimeError, match="cannot build bad"):
        cache.get_or_create("bad")
    assert "bad" not in cache
    assert len(cache) == 0
    assert cache.build_count == 0

    assert cache.get_or_create("bad") == "unit-bad"
    assert factory.attempts == 2
    assert "bad" in cache


def test_lookup_reports_cache_hit() -> None:
    """`lookup` should report a miss on first build and hits afterwards."""
    cache = KeyedInstanceCache(_CountingFactory())

    first, first_hit = cache.lookup("a")
    second, second_hit = cache.lookup("a")

    assert first_hit is False
    assert second_hit is True
    assert first is second


def test_introspection_never_builds() -> None:
    """Containment, length and keys should not invoke the factory."""
    factory = _CountingFactory()
    cache = KeyedInstanceCache(factory, name="family")

    assert "a" not in cache
    assert len(cache) == 0
    assert cache.keys() == []
    assert not factory.calls

    cache("b")
    cache("a")

    assert cache.keys() == ["b", "a"]
    assert len(cache) == cache.build_count == 2
    assert "family" in repr(cache)


def test_unhashable_key_raises_before_factory() -> None:
    """Unhashable keys should fail with TypeError and never reach the factory."""
    factory = _CountingFactory()
    cache = KeyedInstanceCache(factory)

    with pytest.raises(TypeError):
        cache.get_or_create(["not", "hashable"])  # type: ignore[arg-type]
    assert not factory.calls


def test_equal_tuple_keys_share_one_unit() -> None:
    """Structurally equal keys should resolve to the same unit."""
    cache = KeyedInstanceCache(_CountingFactory())

    assert cache.get_or_create(("user", 1)) is cache.get_or_create(("user", 1))


def test_concurrent_first_access_builds_once() -> None:
    """Threads racing on a cold key should all receive the single built unit."""
    calls: list[str] = []

    def slow_factory(key: str) -> object:
        calls.append(key)
        time.sleep(0.01)
        return object()

    cache = KeyedInstanceCache(slow_factory)
    barrier = threading.Barrier(8)
    results: list[object] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        unit = cache.get_or_create("hot")
        with results_lock:
            results.append(unit)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == ["hot"]
    assert len(results) == 8
    assert all(unit is results[0] for unit in results)


def test_factory_may_look_up_other_keys() -> None:
    """A factory that resolves another key of the same cache should not deadlock."""
    cache: KeyedInstanceCache[int, tuple] = KeyedInstanceCache(
        lambda n: (n,) if n == 0 else (n, cache.get_or_create(n - 1))
    )

    three = cache.get_or_create(3)

    assert three[1] is cache.get_or_create(2)
    assert len(cache) == 4


def test_unlocked_cache_keeps_contract() -> None:
    """Single-threaded caches should honor the same identity guarantees."""
    factory = _CountingFactory()
    cache = KeyedInstanceCache(factory, thread_safe=False)

    assert cache.get_or_create("a") is cache.get_or_create("a")
    assert factory.calls == Counter({"a": 1})


def test_selector_with_props_instances_do_not_share_state() -> None:
    """Each wrapped factory should own its cache."""
    factory = _CountingFactory()
    first = selector_with_props(factory)
    second = selector_with_props(factory)

    assert first("a") is first("a")
    assert first("a") is not second("a")
    assert factory.calls == Counter({"a": 2})
