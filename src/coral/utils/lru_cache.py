"""Thread-safe LRU cache used for compiled templates and rendered output.

Each engine owns its caches; there is no module-level instance.

Ordering:
    Entries live in an ``OrderedDict`` kept in recency order, least recently
    used first. Every hit stamps the entry with a fresh tick from a
    monotonic counter and moves it to the end, so the first entry is always
    the one with the oldest ``last_access``. Ties cannot occur; insertion
    order decides between entries that were never accessed after insert.

Concurrency:
    Every read-check, insert and evict runs under one ``RLock``.
    ``get_or_set`` runs the factory *outside* the lock so a slow compile
    never blocks hits for other keys. When two threads miss on the same key,
    both factories run, the first insert wins, and the loser's value is
    discarded in favour of the cached one.

"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from itertools import count
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(slots=True)
class CacheEntry(Generic[K, V]):
    """One cached value and the tick of its most recent access."""

    key: K
    value: V
    last_access: int


class LRUCache(Generic[K, V]):
    """Bounded mapping with least-recently-used eviction.

    Args:
        maxsize: Maximum number of entries. 0 disables the cache: lookups
            always miss and nothing is stored.
        name: Label used in log messages and ``stats()``.

    Example:
        >>> cache = LRUCache(maxsize=2)
        >>> cache.set("a", 1)
        >>> cache.set("b", 2)
        >>> cache.get("a")
        1
        >>> cache.set("c", 3)  # evicts "b", the least recently used
        >>> "b" in cache
        False
    """

    __slots__ = (
        "_data",
        "_discarded",
        "_evictions",
        "_hits",
        "_lock",
        "_maxsize",
        "_misses",
        "_name",
        "_ticks",
    )

    def __init__(self, maxsize: int = 128, *, name: str = "cache"):
        if maxsize < 0:
            raise ValueError(f"maxsize must be >= 0, got {maxsize}")
        self._maxsize = maxsize
        self._name = name
        self._data: OrderedDict[K, CacheEntry[K, V]] = OrderedDict()
        self._lock = threading.RLock()
        self._ticks = count(1)
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._discarded = 0

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def _touch(self, entry: CacheEntry[K, V]) -> None:
        # Caller holds the lock
        entry.last_access = next(self._ticks)
        self._data.move_to_end(entry.key)

    def _insert(self, key: K, value: V) -> None:
        # Caller holds the lock
        if key in self._data:
            entry = self._data[key]
            entry.value = value
            self._touch(entry)
            return
        self._data[key] = CacheEntry(key, value, next(self._ticks))
        while len(self._data) > self._maxsize:
            evicted_key, _ = self._data.popitem(last=False)
            self._evictions += 1
            logger.debug("%s: evicted %s", self._name, _short(evicted_key))

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the cached value and refresh its recency, or ``default``."""
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            self._touch(entry)
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Store a value, evicting the least recently used entry if full."""
        if self._maxsize == 0:
            return
        with self._lock:
            self._insert(key, value)

    def get_or_set(self, key: K, factory: Callable[[], V]) -> V:
        """Return the cached value for ``key``, computing it on a miss.

        The factory runs without the lock held. If another thread inserted
        the key in the meantime, the freshly computed value is dropped and
        the cached one returned, so at most one value per key is ever live.
        Exceptions from the factory propagate and nothing is stored.
        """
        with self._lock:
            entry = self._data.get(key)
            if entry is not None:
                self._hits += 1
                self._touch(entry)
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug("%s: hit for %s", self._name, _short(key))
                return entry.value
            self._misses += 1

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s: miss for %s", self._name, _short(key))
        value = factory()

        if self._maxsize == 0:
            return value
        with self._lock:
            entry = self._data.get(key)
            if entry is not None:
                self._discarded += 1
                self._touch(entry)
                logger.debug("%s: discarded duplicate value for %s", self._name, _short(key))
                return entry.value
            self._insert(key, value)
            return value

    def entry(self, key: K) -> CacheEntry[K, V] | None:
        """Return the raw entry without touching recency or stats."""
        with self._lock:
            return self._data.get(key)

    def clear(self) -> None:
        """Drop every entry and reset the counters."""
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._discarded = 0

    def keys(self) -> list[K]:
        """Keys in recency order, least recently used first."""
        with self._lock:
            return list(self._data)

    def stats(self) -> dict[str, Any]:
        """Snapshot of size, capacity and hit/miss/eviction/discard counters."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "name": self._name,
                "size": len(self._data),
                "capacity": self._maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "discarded": self._discarded,
                "hit_rate": self._hits / total if total else 0.0,
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return f"<LRUCache {self._name} {len(self)}/{self._maxsize}>"


def _short(key: object) -> str:
    text = repr(key)
    return text if len(text) <= 60 else text[:57] + "..."
