"""Time-limited, build-coalescing cache.

Each key maps to a CacheEntry. A pending entry marks a build in flight:
late arrivals wait for it instead of starting their own build.
"""

from __future__ import annotations

__all__ = ["CacheEntry", "TTLCache"]

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from .logging_setup import get_logger

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Hashable

K = TypeVar("K", bound="Hashable")
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Cache data structure."""

    expiration_date: float = math.inf
    payload: V | None = None
    ready: bool = False
    error: BaseException | None = None
    _signal: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def pending(self) -> bool:
        """True while the value is being built."""
        return not self.ready

    def set_value(self, value: V, expiration_date: float) -> None:
        """Set the cached value.

        Unblocks awaiters of `wait_update`
        """
        self.payload = value
        self.expiration_date = expiration_date
        self.ready = True
        self._signal.set()

    def set_error(self, error: BaseException) -> None:
        """Abort the build, awaiters of `wait_update` get the error."""
        self.error = error
        self.ready = True
        self.expiration_date = 0
        self._signal.set()

    async def wait_update(self) -> V:
        """Wait for the cache data to be available."""
        await self._signal.wait()
        if self.error is not None:
            raise self.error
        return self.payload  # type: ignore[return-value]


class TTLCache(Generic[K, V]):
    """A keyed cache with expiration and single-flight builds.

    Args:
        name: Used in log messages
        ttl: Default time to live in seconds (None for no expiration)
        max_entries: Upper bound on stored entries (None for unbounded)
        logger: Logger instance
    """

    def __init__(
        self,
        name: str,
        ttl: float | None = None,
        max_entries: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.ttl = ttl
        self.max_entries = max_entries
        self.log = logger or get_logger("specengine.cache")
        self._entries: dict[K, CacheEntry[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expiration(self, ttl: float | None) -> float:
        ttl = self.ttl if ttl is None else ttl
        if ttl is None:
            return math.inf
        return time.monotonic() + ttl

    def _fresh(self, entry: CacheEntry[V]) -> bool:
        return entry.pending or entry.expiration_date > time.monotonic()

    def lookup(self, key: K) -> V | None:
        """Return the value stored under `key` if it is ready and not expired."""
        entry = self._entries.get(key)
        if entry is None or entry.pending or entry.error is not None or not self._fresh(entry):
            return None
        return entry.payload

    def insert(self, key: K, value: V, ttl: float | None = None) -> None:
        """Store `value` under `key`, replacing any previous entry."""
        entry: CacheEntry[V] = CacheEntry()
        entry.set_value(value, self._expiration(ttl))
        self._store(key, entry)

    def invalidate(self, key: K) -> None:
        """Forget `key`; a build in flight still completes for its waiters."""
        self._entries.pop(key, None)

    def invalidate_where(self, predicate: Callable[[K], bool]) -> None:
        """Forget every key matching `predicate`."""
        for key in [k for k in self._entries if predicate(k)]:
            del self._entries[key]

    def clear(self) -> None:
        """Drop every entry.

        Builds in flight finish for the callers already waiting on them but
        their results are not stored.
        """
        self._entries = {}

    async def get_or_build(self, key: K, builder: Callable[[], Awaitable[V]], ttl: float | None = None) -> V:
        """Return the cached value for `key`, building it at most once.

        Args:
            key: The cache key
            builder: Coroutine factory computing the value on a miss
            ttl: Time to live for this value (defaults to the cache TTL)

        Returns:
            The cached or freshly built value
        """
        entry = self._entries.get(key)
        if entry is not None and entry.error is None and self._fresh(entry):
            self.log.debug("%s: %s (CACHE HIT)", self.name, key)
            return await entry.wait_update()

        entry = CacheEntry()
        self._store(key, entry)
        try:
            value = await builder()
        except BaseException as e:
            if self._entries.get(key) is entry:
                del self._entries[key]
            entry.set_error(e)
            raise
        entry.set_value(value, self._expiration(ttl))
        return value

    def _store(self, key: K, entry: CacheEntry[V]) -> None:
        self._entries.pop(key, None)
        self._entries[key] = entry
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            self._evict()

    def _evict(self) -> None:
        """Drop expired entries, then the oldest ready ones."""
        now = time.monotonic()
        for key in [k for k, e in self._entries.items() if e.ready and e.expiration_date <= now]:
            del self._entries[key]
        if self.max_entries is None:
            return
        excess = len(self._entries) - self.max_entries
        if excess <= 0:
            return
        for key in [k for k, e in self._entries.items() if e.ready][:excess]:
            del self._entries[key]
