"""Reference-counted broadcast with latest-value replay.

``RefCountBroadcast`` lets any number of subscribers share one upstream
subscription. The first subscriber connects upstream; later subscribers
receive the most recent value immediately and then live values. When the
last subscriber leaves, upstream is torn down and the replayed value is
dropped, so nothing is retained without subscribers. An upstream error or
completion is forwarded to everyone and likewise resets the broadcast: the
next subscriber starts a fresh upstream subscription.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .stream import Stream, Subscriber, Teardown

T = TypeVar("T")

_UNSET: Any = object()


class RefCountBroadcast(Generic[T]):
    """Shares one upstream subscription among subscribers of ``stream``."""

    __slots__ = ("_source", "_sinks", "_upstream", "_latest", "stream")

    def __init__(self, source: Stream[T]) -> None:
        self._source = source
        self._sinks: list[Subscriber[T]] = []
        self._upstream: Subscriber[T] | None = None
        self._latest: T = _UNSET
        self.stream: Stream[T] = Stream(self._attach)

    @property
    def ref_count(self) -> int:
        return len(self._sinks)

    @property
    def connected(self) -> bool:
        return self._upstream is not None

    def _attach(self, sink: Subscriber[T]) -> Teardown:
        self._sinks.append(sink)
        if self._latest is not _UNSET:
            sink.next(self._latest)
        if self._upstream is None:
            self._upstream = Subscriber(self._emit, self._fail, self._finish)
            self._source.subscribe_with(self._upstream)
        return lambda: self._detach(sink)

    def _detach(self, sink: Subscriber[T]) -> None:
        if sink not in self._sinks:
            return
        self._sinks.remove(sink)
        if not self._sinks:
            upstream = self._reset()
            if upstream is not None:
                upstream.unsubscribe()

    def _reset(self) -> Subscriber[T] | None:
        upstream, self._upstream, self._latest = self._upstream, None, _UNSET
        return upstream

    def _emit(self, value: T) -> None:
        self._latest = value
        for sink in list(self._sinks):
            sink.next(value)

    def _fail(self, exc: BaseException) -> None:
        sinks, self._sinks = self._sinks, []
        self._reset()
        for sink in sinks:
            sink.error(exc)

    def _finish(self) -> None:
        sinks, self._sinks = self._sinks, []
        self._reset()
        for sink in sinks:
            sink.complete()


def share_replay() -> Callable[[Stream[T]], Stream[T]]:
    """Operator form: ``stream.pipe(share_replay())`` returns the shared stream."""
    return lambda source: RefCountBroadcast(source).stream
