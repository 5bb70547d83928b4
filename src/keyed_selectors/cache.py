"""Keyed instance cache for self-memoizing computation units.

Building a parameterized selector on every call defeats whatever memoization
lives inside it, since a fresh instance has no history. ``KeyedInstanceCache``
builds the unit once per key and hands back that same instance afterwards, so
repeated lookups for one key share its cached results while different keys
stay independent.

Keys must be hashable with stable equality. Identity-compared keys (plain
objects without ``__eq__``) are legal but every new object is a new key.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from contextlib import AbstractContextManager, nullcontext
from threading import RLock
from typing import Generic, TypeVar

from keyed_selectors.config import resolve_thread_safe

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)

_NOT_FOUND = object()


class KeyedInstanceCache(Generic[K, V]):
    """Lazily build and keep one unit per key; entries are never evicted.

    With ``thread_safe`` enabled (the default) the check-then-insert step runs
    under a per-instance reentrant lock, so the factory is invoked at most once
    per key even under concurrent first access, and a factory may itself look
    up other keys of the same cache. The lock is held while the factory runs,
    so first builds of other keys wait for it. Factories of two caches must
    not look each other up: a thread building in cache A that needs cache B,
    racing a thread building in cache B that needs cache A, deadlocks. With
    ``thread_safe=False`` callers must not share the instance across threads.
    """

    def __init__(
        self,
        factory: Callable[[K], V],
        *,
        thread_safe: bool | None = None,
        name: str | None = None,
    ) -> None:
        self._factory = factory
        self._entries: dict[K, V] = {}
        self._lock: AbstractContextManager[object] = (
            RLock() if resolve_thread_safe(thread_safe) else nullcontext()
        )
        self.name = name or getattr(factory, "__qualname__", type(factory).__name__)
        self.build_count = 0

    def __repr__(self) -> str:
        return f"<KeyedInstanceCache {self.name!r} entries={len(self._entries)}>"

    def __call__(self, key: K) -> V:
        return self.get_or_create(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[K]:
        """Return a snapshot of cached keys in insertion order."""
        with self._lock:
            return list(self._entries)

    def get_or_create(self, key: K) -> V:
        """Return the unit for ``key``, building it on first request."""
        unit, _ = self.lookup(key)
        return unit

    def lookup(self, key: K) -> tuple[V, bool]:
        """Return ``(unit, cache_hit)`` for ``key``, building once on miss.

        Factory errors propagate and leave the key absent, so the next call
        retries the factory.
        """
        # Entries are never replaced, so a hit outside the lock is final.
        existing = self._entries.get(key, _NOT_FOUND)
        if existing is not _NOT_FOUND:
            return existing, True  # type: ignore[return-value]

        with self._lock:
            existing = self._entries.get(key, _NOT_FOUND)
            if existing is not _NOT_FOUND:
                return existing, True  # type: ignore[return-value]

            unit = self._factory(key)
            self._entries[key] = unit
            self.build_count += 1
            logger.debug("built unit for key %r in cache %s", key, self.name)
            return unit, False


def selector_with_props(
    factory: Callable[[K], V],
    *,
    thread_safe: bool | None = None,
) -> KeyedInstanceCache[K, V]:
    """Wrap ``factory`` so each distinct prop yields one stable selector."""
    return KeyedInstanceCache(factory, thread_safe=thread_safe)
