"""Shared error-subscriber bookkeeping for a lineage of nodes.

Every node derived from one root engine holds the same ``Lineage``. Its
``ErrorCounter`` handles count live subscriptions to ``error`` streams, so a
subscription anywhere in the lineage marks errors as handled everywhere in
it. A combined node's lineage holds a fresh counter plus every constituent's
counters: subscribing to the combined ``error`` stream counts for all of them.
It also keeps the constituent lineages as ``parents``, so an ``Error`` folded
from constituent errors that were already reported is not reported again.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterable
from dataclasses import dataclass

from tristate.envelope import Error


@dataclass(slots=True, eq=False)
class ErrorCounter:
    """Number of live ``error`` subscriptions on the lineage that owns it."""

    count: int = 0


class Lineage:
    """Reference-counted handles threaded through every node constructor."""

    __slots__ = ("counters", "parents", "_reported")

    def __init__(self, counters: Iterable[ErrorCounter] | None = None, parents: Iterable[Lineage] = ()) -> None:
        self.counters: tuple[ErrorCounter, ...] = tuple(counters) if counters is not None else (ErrorCounter(),)
        self.parents: tuple[Lineage, ...] = tuple(parents)
        # id -> envelope; entries vanish with the envelope
        self._reported: weakref.WeakValueDictionary[int, Error[object]] = weakref.WeakValueDictionary()

    @classmethod
    def merge(cls, lineages: Iterable[Lineage]) -> Lineage:
        """Fresh counter followed by the constituents' counters, without duplicates."""
        lineages = tuple(lineages)
        counters: list[ErrorCounter] = [ErrorCounter()]
        for lineage in lineages:
            counters.extend(c for c in lineage.counters if not any(c is seen for seen in counters))
        return cls(counters, lineages)

    @property
    def handled(self) -> bool:
        """Whether any ``error`` stream in the lineage currently has a subscriber."""
        return any(c.count > 0 for c in self.counters)

    def acquire(self) -> None:
        for counter in self.counters:
            counter.count += 1

    def release(self) -> None:
        for counter in self.counters:
            counter.count -= 1

    def accounted(self, envelope: Error[object]) -> bool:
        """Whether ``envelope`` was reported here, or folds only errors the parents already accounted for."""
        if self._reported.get(id(envelope)) is envelope:
            return True
        return bool(envelope.causes) and all(
            any(parent.accounted(cause) for parent in self.parents) for cause in envelope.causes
        )

    def first_report(self, envelope: Error[object]) -> bool:
        """True the first time ``envelope`` is seen; descendants re-emitting it, or folding reported errors, get False."""
        if self.accounted(envelope):
            return False
        self._reported[id(envelope)] = envelope
        return True
