"""Bounded existence caches.

Memoizes "does command X exist" / "does function X exist" checks. Each
cache keeps an insertion-ordered mapping plus an ordered key list used
only for eviction. Eviction is FIFO in batches: once the size exceeds the
capacity, the oldest ``max(1, capacity // 2)`` entries are dropped. Cache
hits never move an entry.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Any, Iterator

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_]")

COMMAND_NAMESPACE = "cmd_"
FUNCTION_NAMESPACE = "func_exists_"


def make_cache_key(namespace: str, name: str) -> str:
    """Build a storage-safe cache key for a checked name.

    Every character outside ``[A-Za-z0-9_]`` becomes ``_`` and the
    namespace tag is prepended, so keys from different caches never collide.
    """
    return namespace + _UNSAFE_KEY_CHARS.sub("_", name)


class ExistenceCache:
    """FIFO-evicting cache from lookup key to a boolean result.

    Args:
        capacity: Maximum number of entries kept after an eviction pass.
        namespace: Key prefix for this cache (see make_cache_key).
        logger: Optional logger receiving a debug line per eviction pass.
    """

    def __init__(self, capacity: int, namespace: str = "", logger: Any = None):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.namespace = namespace
        self._logger = logger
        self._entries: dict[str, bool] = {}
        self._order: deque[str] = deque()
        self._size = 0

    def key_for(self, name: str) -> str:
        """Cache key for a checked name in this cache's namespace."""
        return make_cache_key(self.namespace, name)

    def lookup(self, key: str) -> bool | None:
        """Return the cached result, or None on a miss."""
        return self._entries.get(key)

    def insert(self, key: str, value: bool) -> None:
        """Store a result and evict if the cache is now over capacity.

        Re-inserting an existing key updates its value in place; its
        position in the eviction order is unchanged.
        """
        if key in self._entries:
            self._entries[key] = value
            return

        self._entries[key] = value
        self._order.append(key)
        self._size += 1
        self.evict_if_over_capacity()

    def discard(self, key: str) -> bool:
        """Remove one entry. Returns True if it was present."""
        if key not in self._entries:
            return False
        del self._entries[key]
        self._order.remove(key)
        self._size = len(self._entries)
        return True

    def evict_if_over_capacity(self) -> int:
        """Drop the oldest entries in one batch when over capacity.

        Returns:
            Number of order-list slots processed (0 when under capacity).
        """
        if self._size <= self.capacity:
            return 0

        to_remove = max(1, self.capacity // 2)
        removed = 0
        while removed < to_remove and self._order:
            key = self._order.popleft()
            self._entries.pop(key, None)
            removed += 1

        # Size is always recomputed from the mapping, never decremented
        self._size = len(self._entries)
        if self._logger is not None:
            self._logger.debug(
                "cache_evicted",
                namespace=self.namespace,
                removed=removed,
                size=self._size,
            )
        return removed

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
        self._order.clear()
        self._size = 0

    def keys(self) -> list[str]:
        """Cached keys, oldest first."""
        return list(self._order)

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def __repr__(self) -> str:
        return (
            f"ExistenceCache(namespace={self.namespace!r}, "
            f"size={self._size}, capacity={self.capacity})"
        )
