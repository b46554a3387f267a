"""Bounded key -> value store with least-recently-used eviction.

One ``RollingCache`` is one cache generation of a stateful engine. Both
``set`` and a ``get`` hit move the key to the most-recently-used position;
eviction removes from the least-recently-used end.

No locking: generations are only touched from the event loop thread.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from collections.abc import Callable, Iterator, Sequence
from typing import Generic, TypeVar, overload

DEFAULT_CACHE_SIZE: int = 42

V = TypeVar("V")
D = TypeVar("D")


class RollingCache(Generic[V]):
    """LRU cache with a capacity fixed at construction.

    Args:
        capacity: Maximum number of entries. Negative or fractional values are
            floored at 0; capacity 0 disables storage entirely.

    Example:
        >>> cache = RollingCache[int](2)
        >>> cache.set("a", 1); cache.set("b", 2)
        >>> cache.get("a")   # promotes "a"
        1
        >>> cache.set("c", 3)  # evicts "b"
        >>> "b" in cache
        False
    """

    __slots__ = ("_entries", "_capacity")

    def __init__(self, capacity: float = DEFAULT_CACHE_SIZE) -> None:
        self._capacity = max(0, math.floor(capacity))
        self._entries: OrderedDict[str, V] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def set(self, key: str, value: V) -> None:
        """Insert or refresh ``key`` as most recently used, evicting the oldest entries beyond capacity."""
        if self._capacity == 0:
            return
        self._entries.pop(key, None)
        self._entries[key] = value
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)

    @overload
    def get(self, key: str) -> V | None: ...
    @overload
    def get(self, key: str, default: D) -> V | D: ...

    def get(self, key: str, default: object = None) -> object:
        """Return the value for ``key`` and promote it, or ``default`` without side effects."""
        if key not in self._entries:
            return default
        self._entries.move_to_end(key)
        return self._entries[key]

    def reset(self, predicate: Callable[[V], bool] | None = None) -> int:
        """Remove every entry, or only those whose value satisfies ``predicate``. Returns count removed."""
        if predicate is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        doomed = [k for k, v in self._entries.items() if predicate(v)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def values(self) -> list[V]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership test does not count as a use
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def stats(self) -> dict[str, int]:
        """Cache statistics for debugging."""
        return {"entries": len(self._entries), "capacity": self._capacity}

    def __repr__(self) -> str:
        return f"RollingCache(capacity={self._capacity}, entries={len(self._entries)})"


def format_key(parts: str | Sequence[object] | None) -> str:
    """Normalize a cache key function result: strings are used as-is, sequences joined with ``|``."""
    match parts:
        case None:
            return ""
        case str():
            return parts
        case _:
            return "|".join(str(p) for p in parts)
