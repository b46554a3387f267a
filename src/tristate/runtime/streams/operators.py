"""Stream operators.

Each function returns an operator, a ``Stream -> Stream`` callable, for use
with ``Stream.pipe``. Exceptions raised by caller-supplied functions are
delivered downstream as stream errors; exceptions raised by downstream
callbacks propagate to whoever is pushing.

Flattening operators decide what happens when a new outer value arrives
while a previous inner stream is still running:

    - switch_map: unsubscribe (cancel) the previous inner, start the new one
    - merge_map: run all inners concurrently
    - concat_map: queue the new value until the previous inner completes

Example:
    >>> from tristate.runtime.streams import of, ops
    >>> of(1, 2, 3).pipe(ops.map(lambda x: x * 10), ops.filter(lambda x: x > 10)).subscribe(print)
    20
    30
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Hashable
from typing import Any, TypeVar

from .broadcast import share_replay
from .stream import Operator, Stream, Subject, Subscriber, Teardown, from_source, of

T = TypeVar("T")
U = TypeVar("U")

_UNSET: Any = object()

__all__ = [
    "map", "filter", "tap", "finalize", "start_with", "catch", "take", "skip", "take_until",
    "distinct_until_changed", "debounce", "switch_map", "merge_map", "concat_map",
    "combine_latest", "merge", "concat", "connect", "route", "share_replay",
]


def _lift(on_subscribe: Callable[[Stream[T], Subscriber[U]], Teardown]) -> Operator:
    return lambda source: Stream(lambda sink: on_subscribe(source, sink))


# ─────────────────────────────────────────────────────────────────────────────
# Per-item
# ─────────────────────────────────────────────────────────────────────────────


def map(fn: Callable[[T], U]) -> Operator:  # noqa: A001
    def subscribe(source: Stream[T], sink: Subscriber[U]) -> Teardown:
        def on_next(value: T) -> None:
            try:
                result = fn(value)
            except Exception as exc:
                sink.error(exc)
                return
            sink.next(result)
        return source.subscribe(on_next, sink.error, sink.complete)
    return _lift(subscribe)


def filter(predicate: Callable[[T], bool]) -> Operator:  # noqa: A001
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        def on_next(value: T) -> None:
            try:
                keep = predicate(value)
            except Exception as exc:
                sink.error(exc)
                return
            if keep:
                sink.next(value)
        return source.subscribe(on_next, sink.error, sink.complete)
    return _lift(subscribe)


def tap(
    on_next: Callable[[T], object] | None = None,
    *,
    on_error: Callable[[BaseException], object] | None = None,
    on_completed: Callable[[], object] | None = None,
    on_subscribe: Callable[[], object] | None = None,
) -> Operator:
    """Side effects without changing the stream. ``on_subscribe`` runs before upstream is subscribed."""
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        if on_subscribe is not None:
            on_subscribe()

        def forward(value: T) -> None:
            if on_next is not None:
                try:
                    on_next(value)
                except Exception as exc:
                    sink.error(exc)
                    return
            sink.next(value)

        def fail(exc: BaseException) -> None:
            if on_error is not None:
                on_error(exc)
            sink.error(exc)

        def finish() -> None:
            if on_completed is not None:
                on_completed()
            sink.complete()

        return source.subscribe(forward, fail, finish)
    return _lift(subscribe)


def finalize(callback: Callable[[], object]) -> Operator:
    """Run ``callback`` once when the subscription ends for any reason."""
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        sink.add(callback)
        return source.subscribe(sink.next, sink.error, sink.complete)
    return _lift(subscribe)


def start_with(*values: T) -> Operator:
    return lambda source: concat(of(*values), source)


def catch(handler: Callable[[BaseException], Stream[U]]) -> Operator:
    """On upstream error, continue with the stream returned by ``handler``."""
    def subscribe(source: Stream[T], sink: Subscriber[T | U]) -> Teardown:
        def recover(exc: BaseException) -> None:
            try:
                fallback = handler(exc)
            except Exception as handler_exc:
                sink.error(handler_exc)
                return
            sink.add(fallback.subscribe(sink.next, sink.error, sink.complete))
        return source.subscribe(sink.next, recover, sink.complete)
    return _lift(subscribe)


def take(count: int) -> Operator:
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        if count <= 0:
            sink.complete()
            return None
        seen = 0

        def on_next(value: T) -> None:
            nonlocal seen
            seen += 1
            sink.next(value)
            if seen >= count:
                sink.complete()
        return source.subscribe(on_next, sink.error, sink.complete)
    return _lift(subscribe)


def skip(count: int) -> Operator:
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        skipped = 0

        def on_next(value: T) -> None:
            nonlocal skipped
            if skipped < count:
                skipped += 1
                return
            sink.next(value)
        return source.subscribe(on_next, sink.error, sink.complete)
    return _lift(subscribe)


def take_until(notifier: Stream[Any]) -> Operator:
    """Complete as soon as ``notifier`` emits."""
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        sink.add(notifier.subscribe(lambda _: sink.complete(), sink.error))
        if sink.closed:
            return None
        return source.subscribe(sink.next, sink.error, sink.complete)
    return _lift(subscribe)


def distinct_until_changed(key: Callable[[T], Hashable] | None = None) -> Operator:
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        last: Any = _UNSET

        def on_next(value: T) -> None:
            nonlocal last
            try:
                current = key(value) if key is not None else value
            except Exception as exc:
                sink.error(exc)
                return
            if last is not _UNSET and last == current:
                return
            last = current
            sink.next(value)
        return source.subscribe(on_next, sink.error, sink.complete)
    return _lift(subscribe)


def debounce(seconds: float) -> Operator:
    """Emit a value only after ``seconds`` pass without a newer one; requires a running loop."""
    def subscribe(source: Stream[T], sink: Subscriber[T]) -> Teardown:
        loop = asyncio.get_running_loop()
        pending: asyncio.TimerHandle | None = None
        latest: Any = _UNSET

        def flush() -> None:
            nonlocal pending, latest
            pending = None
            value, latest = latest, _UNSET
            if value is not _UNSET:
                sink.next(value)

        def on_next(value: T) -> None:
            nonlocal pending, latest
            latest = value
            if pending is not None:
                pending.cancel()
            pending = loop.call_later(seconds, flush)

        def on_completed() -> None:
            if pending is not None:
                pending.cancel()
            flush()
            sink.complete()

        def cancel() -> None:
            if pending is not None:
                pending.cancel()

        sink.add(cancel)
        return source.subscribe(on_next, sink.error, on_completed)
    return _lift(subscribe)


# ─────────────────────────────────────────────────────────────────────────────
# Flattening (overlap policies)
# ─────────────────────────────────────────────────────────────────────────────


def _project(project: Callable[[T], object], value: T) -> Stream[Any]:
    return from_source(project(value))


def switch_map(project: Callable[[T], object]) -> Operator:
    """Cancel-and-restart: each outer value unsubscribes the previous inner stream."""
    def subscribe(source: Stream[T], sink: Subscriber[Any]) -> Teardown:
        current: Subscriber[Any] | None = None
        outer_done = False

        def inner_done(child: Subscriber[Any]) -> None:
            nonlocal current
            if current is child:
                current = None
                if outer_done:
                    sink.complete()

        def on_next(value: T) -> None:
            nonlocal current
            if current is not None:
                previous, current = current, None
                previous.unsubscribe()
            try:
                inner = _project(project, value)
            except Exception as exc:
                sink.error(exc)
                return
            child: Subscriber[Any] = Subscriber(sink.next, sink.error, lambda: inner_done(child))
            current = child
            inner.subscribe_with(child)

        def on_completed() -> None:
            nonlocal outer_done
            outer_done = True
            if current is None:
                sink.complete()

        def cancel() -> None:
            if current is not None:
                current.unsubscribe()

        sink.add(cancel)
        return source.subscribe(on_next, sink.error, on_completed)
    return _lift(subscribe)


def merge_map(project: Callable[[T], object]) -> Operator:
    """Run every inner stream concurrently, interleaving their values."""
    def subscribe(source: Stream[T], sink: Subscriber[Any]) -> Teardown:
        active: list[Subscriber[Any]] = []
        outer_done = False

        def inner_done(child: Subscriber[Any]) -> None:
            if child in active:
                active.remove(child)
            if outer_done and not active:
                sink.complete()

        def on_next(value: T) -> None:
            try:
                inner = _project(project, value)
            except Exception as exc:
                sink.error(exc)
                return
            child: Subscriber[Any] = Subscriber(sink.next, sink.error, lambda: inner_done(child))
            active.append(child)
            inner.subscribe_with(child)

        def on_completed() -> None:
            nonlocal outer_done
            outer_done = True
            if not active:
                sink.complete()

        def cancel() -> None:
            for child in list(active):
                child.unsubscribe()
            active.clear()

        sink.add(cancel)
        return source.subscribe(on_next, sink.error, on_completed)
    return _lift(subscribe)


def concat_map(project: Callable[[T], object]) -> Operator:
    """Queue-in-order: each inner stream starts after the previous one completes."""
    def subscribe(source: Stream[T], sink: Subscriber[Any]) -> Teardown:
        queue: deque[T] = deque()
        current: Subscriber[Any] | None = None
        outer_done = False

        def start(value: T) -> None:
            nonlocal current
            try:
                inner = _project(project, value)
            except Exception as exc:
                sink.error(exc)
                return
            child: Subscriber[Any] = Subscriber(sink.next, sink.error, lambda: inner_done(child))
            current = child
            inner.subscribe_with(child)

        def inner_done(child: Subscriber[Any]) -> None:
            nonlocal current
            if current is not child:
                return
            current = None
            if queue:
                start(queue.popleft())
            elif outer_done:
                sink.complete()

        def on_next(value: T) -> None:
            if current is None:
                start(value)
            else:
                queue.append(value)

        def on_completed() -> None:
            nonlocal outer_done
            outer_done = True
            if current is None and not queue:
                sink.complete()

        def cancel() -> None:
            queue.clear()
            if current is not None:
                current.unsubscribe()

        sink.add(cancel)
        return source.subscribe(on_next, sink.error, on_completed)
    return _lift(subscribe)


# ─────────────────────────────────────────────────────────────────────────────
# Combination
# ─────────────────────────────────────────────────────────────────────────────


def combine_latest(*streams: Stream[Any]) -> Stream[tuple[Any, ...]]:
    """Emit a tuple of every stream's latest value once all have emitted."""
    def produce(sink: Subscriber[tuple[Any, ...]]) -> Teardown:
        if not streams:
            sink.complete()
            return None
        latest: list[Any] = [_UNSET] * len(streams)
        running = len(streams)

        def on_next(index: int, value: Any) -> None:
            latest[index] = value
            if all(v is not _UNSET for v in latest):
                sink.next(tuple(latest))

        def on_completed(index: int) -> None:
            nonlocal running
            running -= 1
            if running == 0 or latest[index] is _UNSET:
                sink.complete()

        for index, stream in enumerate(streams):
            if sink.closed:
                break
            sink.add(stream.subscribe(
                lambda v, i=index: on_next(i, v), sink.error, lambda i=index: on_completed(i),
            ))
        return None
    return Stream(produce)


def merge(*streams: Stream[Any]) -> Stream[Any]:
    """Interleave values from all streams; complete when all complete."""
    def produce(sink: Subscriber[Any]) -> Teardown:
        running = len(streams)
        if not running:
            sink.complete()
            return None

        def on_completed() -> None:
            nonlocal running
            running -= 1
            if running == 0:
                sink.complete()

        for stream in streams:
            if sink.closed:
                break
            sink.add(stream.subscribe(sink.next, sink.error, on_completed))
        return None
    return Stream(produce)


def concat(*streams: Stream[Any]) -> Stream[Any]:
    """Subscribe to each stream after the previous one completes."""
    def produce(sink: Subscriber[Any]) -> Teardown:
        remaining = deque(streams)

        def subscribe_next() -> None:
            if sink.closed:
                return
            if not remaining:
                sink.complete()
                return
            sink.add(remaining.popleft().subscribe(sink.next, sink.error, subscribe_next))

        subscribe_next()
        return None
    return Stream(produce)


def connect(selector: Callable[[Stream[T]], Stream[U]]) -> Operator:
    """Multicast one upstream subscription into the branches built by ``selector``.

    Every branch is subscribed before upstream is connected, so all branches
    see every value, in subscription order.
    """
    def subscribe(source: Stream[T], sink: Subscriber[U]) -> Teardown:
        shared: Subject[T] = Subject()
        sink.add(selector(shared).subscribe(sink.next, sink.error, sink.complete))
        if sink.closed:
            return None
        return source.subscribe(shared.next, shared.error, shared.complete)
    return _lift(subscribe)


def route(predicate: Callable[[T], bool], operator: Operator) -> Operator:
    """Send items matching ``predicate`` through ``operator``; others bypass it. Outputs are merged."""
    return connect(lambda shared: merge(
        shared.pipe(filter(lambda item: not predicate(item))),
        shared.pipe(filter(predicate), operator),
    ))
