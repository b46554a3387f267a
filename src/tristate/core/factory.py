"""Keyed reuse of stateful engines.

``StatefulFactory`` hands out one node per input key, so consumers asking for
the same input share one engine and one cache. Entries live in a
``RollingCache``; the least recently requested are evicted beyond
``cache_size``.

Example:
    >>> users = StatefulFactory(fetch_user, name="users")
    >>> users.get(7) is users.get(7)
    True
    >>> users.reset()            # drop entries nobody is subscribed to
    >>> users.reset(force=True)  # complete every node and drop all entries
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from tristate.foundation.config import get_settings
from tristate.io.cache import RollingCache, format_key
from tristate.runtime.observability import get_logger
from tristate.runtime.streams import Subject, of, ops

from .engine import stateful
from .node import StatefulStream
from .params import OverlapPolicy

I = TypeVar("I")  # noqa: E741

_log = get_logger("tristate.factory")


@dataclass(slots=True, eq=False)
class _Entry:
    node: StatefulStream[Any] | None = None
    subscribers: int = 0


class StatefulFactory(Generic[I]):
    """One reusable ``stateful`` node per cache key of the input.

    Args:
        loader: ``loader(input)`` shared by every node
        cache_key: Key function for both the factory and each engine; defaults to ``[input]``
        cache_size: Maximum cached nodes, and entries per engine cache generation
        map_operator: Overlap policy for each engine
        name: Display name for each node
    """

    __slots__ = ("_loader", "_cache_key", "_cache_size", "_map_operator", "_name", "_entries", "_closing")

    def __init__(
        self,
        loader: Callable[[I], object],
        *,
        cache_key: Callable[[I], object] | None = None,
        cache_size: float | None = None,
        map_operator: OverlapPolicy | str | Callable[..., Any] | None = None,
        name: str | None = None,
    ) -> None:
        self._loader = loader
        self._cache_key = cache_key or (lambda value: [value])
        self._cache_size = cache_size if cache_size is not None else get_settings().engine.cache_size
        self._map_operator = map_operator
        self._name = name
        self._entries: RollingCache[_Entry] = RollingCache(self._cache_size)
        self._closing: Subject[None] = Subject()

    def get(self, input: I) -> StatefulStream[Any]:  # noqa: A002
        """Node for ``input``, created on first request and reused while cached."""
        key = format_key(self._cache_key(input))
        if key and (entry := self._entries.get(key)) is not None:
            return entry.node
        entry = self._create(input)
        if key:
            self._entries.set(key, entry)
        return entry.node

    def _create(self, input: I) -> _Entry:  # noqa: A002
        entry = _Entry()

        def opened() -> None:
            entry.subscribers += 1

        def closed() -> None:
            entry.subscribers -= 1

        options: dict[str, Any] = {"input": of(input), "loader": self._loader, "cache_key": self._cache_key, "cache_size": self._cache_size}
        if self._map_operator is not None:
            options["map_operator"] = self._map_operator
        if self._name is not None:
            options["name"] = self._name
        entry.node = stateful(**options).pipe(
            ops.take_until(self._closing),
            ops.tap(on_subscribe=opened),
            ops.finalize(closed),
        )
        return entry

    def reset(self, force: bool = False) -> int:
        """Drop entries with no active subscribers; ``force`` completes every node and drops all.

        Returns:
            Number of entries removed
        """
        if force:
            self._closing.next(None)
            removed = self._entries.reset()
        else:
            removed = self._entries.reset(lambda entry: entry.subscribers == 0)
        _log.debug("factory reset", force=force, removed=removed, remaining=len(self._entries))
        return removed

    def reload(self) -> None:
        """Reload every cached node."""
        for entry in self._entries.values():
            entry.node.reload()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"StatefulFactory(name={self._name!r}, entries={len(self._entries)})"
