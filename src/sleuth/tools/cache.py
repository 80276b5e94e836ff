"""Bounded in-memory cache with per-entry TTL.

Entries expire lazily (on read) and the cache holds at most
``capacity`` entries; inserting past capacity evicts the entry that was
inserted earliest, regardless of how recently it was read.

Reads and writes are synchronous, so within a single event loop a
check-then-set never interleaves with another coroutine.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

K = TypeVar("K")
V = TypeVar("V")

DEFAULT_CAPACITY = 100


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[V]):
    value: V
    timestamp: float


class BoundedTTLCache(Generic[K, V]):
    """Insertion-ordered cache with capacity and TTL (milliseconds)."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_ms: float = 3_600_000,
        *,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    def _is_expired(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.timestamp > self._ttl_ms

    def get(self, key: K) -> V | None:
        """Return the live value for *key*, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or replace *key*; evict the oldest entry past capacity.

        Replacing a key moves it to the newest position.
        """
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value, self._clock())
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        """Drop every expired entry; return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> list[K]:
        """Keys from oldest to newest insertion."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
