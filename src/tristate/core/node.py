"""StatefulStream: one node in a lineage of tri-state streams.

A node wraps a ``raw`` envelope stream and exposes the derived views
(``value``, ``error``, ``pending``), the composition methods that create child
nodes, and the ``subscribe`` facade. Its output is shared through a
``RefCountBroadcast``, so every consumer of a node sees the same evaluation,
and the last unsubscribe tears the whole upstream down.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

from tristate.envelope import Error, Input, Loading, Value, error_or_false, is_loading, is_value
from tristate.runtime.observability import get_logger
from tristate.runtime.streams import Operator, Stream, Subscriber, ops, share_replay

from .composition import over_errors, over_values
from .diagnostics import UnhandledError, call_log_hook, report_unhandled
from .lineage import Lineage

T = TypeVar("T")

_log = get_logger("tristate.node")

LogHook: TypeAlias = "Callable[[Value[Any] | Error[Any] | Input[Any], str, int], object]"


@dataclass(slots=True)
class StatefulObserver(Generic[T]):
    """Callbacks for ``StatefulStream.subscribe``; any object with these attributes works too."""

    next: Callable[[T], object] | None = None
    error: Callable[[Any], object] | None = None
    pending: Callable[[bool], object] | None = None
    complete: Callable[[], object] | None = None


class StatefulStream(Generic[T]):
    """Tri-state stream node.

    Attributes:
        name: Display name shared by the whole lineage
        index: Position in the lineage (0 for the root engine, +1 per ``pipe*``)

    Example:
        >>> node = stateful(input=ids, loader=fetch_user, cache_key=lambda i: [i])
        >>> names = node.pipe_value(ops.map(lambda user: user.name))
        >>> names.subscribe(print)
    """

    __slots__ = ("_raw", "_lineage", "_reload", "_log_hook", "name", "index")

    def __init__(
        self,
        raw: Stream[Any],
        *,
        name: str,
        lineage: Lineage,
        reload: Callable[[], None],
        index: int = 0,
        log: LogHook | None = None,
    ) -> None:
        self.name = name
        self.index = index
        self._lineage = lineage
        self._reload = reload
        self._log_hook = log
        self._raw: Stream[Any] = raw.pipe(ops.tap(self._report), share_replay())

    # ─────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────

    @property
    def raw(self) -> Stream[Loading | Error[Any] | Value[T]]:
        """Full envelope stream."""
        return self._raw

    @property
    def value(self) -> Stream[T]:
        """Success payloads only."""
        return self._raw.pipe(ops.filter(is_value), ops.map(lambda envelope: envelope.value))

    @property
    def error(self) -> Stream[Any]:
        """Error payload on failure, ``False`` once settled without error.

        Subscribing marks errors in the whole lineage as handled for the
        lifetime of the subscription.
        """
        return self._raw.pipe(
            ops.tap(on_subscribe=self._lineage.acquire),
            ops.finalize(self._lineage.release),
            ops.filter(lambda envelope: not is_loading(envelope)),
            ops.map(error_or_false),
        )

    @property
    def pending(self) -> Stream[bool]:
        return self._raw.pipe(ops.map(is_loading))

    @property
    def lineage(self) -> Lineage:
        return self._lineage

    def reload(self) -> None:
        """Drop the root engine's cache generation and re-evaluate the latest input."""
        self._reload()

    # ─────────────────────────────────────────────────────────────────
    # Composition
    # ─────────────────────────────────────────────────────────────────

    def pipe(self, *operators: Operator) -> StatefulStream[Any]:
        """Child node applying ``operators`` to the envelope stream."""
        return self._derive(self._raw.pipe(*operators))

    def pipe_value(self, *operators: Operator) -> StatefulStream[Any]:
        """Child node applying ``operators`` to each success payload; Loading and Error bypass."""
        return self._derive(self._raw.pipe(over_values(*operators)))

    def pipe_error(self, *operators: Operator) -> StatefulStream[T]:
        """Child node applying ``operators`` to each error payload, re-wrapped as ``Error``."""
        return self._derive(self._raw.pipe(over_errors(*operators)))

    def _derive(self, raw: Stream[Any]) -> StatefulStream[Any]:
        return StatefulStream(
            raw, name=self.name, lineage=self._lineage, reload=self._reload,
            index=self.index + 1, log=self._log_hook,
        )

    # ─────────────────────────────────────────────────────────────────
    # Subscription facade
    # ─────────────────────────────────────────────────────────────────

    def subscribe(
        self,
        observer_or_next: StatefulObserver[T] | Callable[[T], object] | Any = None,
        /,
        *,
        next: Callable[[T], object] | None = None,  # noqa: A002
        error: Callable[[Any], object] | None = None,
        pending: Callable[[bool], object] | None = None,
        complete: Callable[[], object] | None = None,
    ) -> Subscriber[Any]:
        """Subscribe with a value callback, an observer, or keyword callbacks.

        A bare callable receives success payloads only. With an observer or
        keywords: Loading calls ``pending(True)``; Value calls ``next(value)``
        then ``pending(False)``; Error calls ``error(payload)`` then
        ``pending(False)``. Passing an ``error`` callback counts as an error
        subscription for unhandled-error diagnostics. A callback that raises
        is logged; it never reaches the engine as a failure of its own.
        """
        match observer_or_next:
            case None:
                pass
            case _ if callable(observer_or_next):
                next = observer_or_next
            case observer:
                next = getattr(observer, "next", None) or next
                error = getattr(observer, "error", None) or error
                pending = getattr(observer, "pending", None) or pending
                complete = getattr(observer, "complete", None) or complete

        def dispatch(envelope: Loading | Error[Any] | Value[T]) -> None:
            match envelope:
                case Loading():
                    if pending is not None:
                        pending(True)
                case Value(value):
                    if next is not None:
                        next(value)
                    if pending is not None:
                        pending(False)
                case Error(payload):
                    if error is not None:
                        error(payload)
                    if pending is not None:
                        pending(False)

        stream = self._raw
        if error is not None:
            stream = stream.pipe(ops.tap(on_subscribe=self._lineage.acquire), ops.finalize(self._lineage.release))
        return stream.subscribe(self._guard(dispatch), None, self._guard(complete) if complete is not None else None)

    def _guard(self, callback: Callable[..., object]) -> Callable[..., None]:
        def call(*args: Any) -> None:
            try:
                callback(*args)
            except Exception as exc:
                _log.exception("subscriber callback failed", exc, node=self.name, index=self.index)
        return call

    # ─────────────────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────────────────

    def _report(self, envelope: Loading | Error[Any] | Value[T]) -> None:
        match envelope:
            case Loading():
                return
            case _ if self._log_hook is not None:
                call_log_hook(self._log_hook, envelope, self.name, self.index)
            case Error(payload, origin) if not self._lineage.handled and self._lineage.first_report(envelope):
                report_unhandled(UnhandledError(self.name, self.index, payload, origin))

    def __repr__(self) -> str:
        return f"StatefulStream({self.name!r}, index={self.index})"
