"""Bounded least-recently-used cache."""
from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Fixed capacity key/value store with least-recently-used eviction.

    Both ``get`` and ``put`` mark a key as most recently used. Inserting a new
    key into a full cache evicts exactly the least recently used key.

    Example:
        cache: LRUCache[str, Location] = LRUCache(1000)
        if (location := cache.get(ip)) is None:
            location = resolver.lookup(ip)
            cache.put(ip, location)
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"LRU cache capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._data: OrderedDict[K, V] = OrderedDict()

        # Statistics
        self.hits: int = 0
        self.misses: int = 0

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for key and refresh its recency, or default on a miss."""
        try:
            self._data.move_to_end(key)
        except KeyError:
            self.misses += 1
            return default
        self.hits += 1
        return self._data[key]

    def put(self, key: K, value: V) -> None:
        """Insert or replace key, evicting the least recently used key when over capacity."""
        self._data[key] = value
        self._data.move_to_end(key)
        if len(self._data) > self.capacity:
            self._data.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        """Membership test that does not touch recency."""
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self.capacity}, size={len(self)})"
