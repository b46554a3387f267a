"""Push-based streams with explicit subscription lifetimes.

A ``Stream`` wraps a producer function. Subscribing creates a ``Subscriber``,
runs the producer against it, and registers whatever teardown the producer
returns. Delivery is synchronous: values produced during ``subscribe`` reach
the subscriber before ``subscribe`` returns. Asynchronous producers
(awaitables, async iterables) are driven by ``asyncio`` tasks whose handles
are cancelled on teardown.

Key Types:
    - Stream: cold producer of values, composable with ``pipe``
    - Subscriber: receiving end; ``unsubscribe`` runs teardowns once
    - Subject / BehaviorSubject / ReplaySubject: hot multicast sources

Example:
    >>> from tristate.runtime.streams import BehaviorSubject, ops
    >>> ids = BehaviorSubject(1)
    >>> sub = ids.pipe(ops.map(lambda x: x * 2)).subscribe(print)
    2
    >>> ids.next(5)
    10
    >>> sub.unsubscribe()
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from functools import reduce
from typing import Any, Generic, Protocol, TypeAlias, TypeVar

from tristate.foundation.errors import EmptyStreamError, classify_exception
from tristate.runtime.observability import get_logger

T = TypeVar("T")
U = TypeVar("U")

_log = get_logger("tristate.streams")


class Unsubscribable(Protocol):
    def unsubscribe(self) -> None: ...


Teardown: TypeAlias = "Callable[[], object] | Unsubscribable | None"
Producer: TypeAlias = "Callable[[Subscriber[T]], Teardown]"
Operator: TypeAlias = "Callable[[Stream[Any]], Stream[Any]]"


# ─────────────────────────────────────────────────────────────────────────────
# Subscriber
# ─────────────────────────────────────────────────────────────────────────────


class Subscriber(Generic[T]):
    """Receiving end of a subscription.

    Once closed (by error, completion or ``unsubscribe``) nothing more is
    delivered, and registered teardowns have run exactly once, newest first.
    """

    __slots__ = ("_on_next", "_on_error", "_on_completed", "_teardowns", "closed")

    def __init__(
        self,
        on_next: Callable[[T], object] | None = None,
        on_error: Callable[[BaseException], object] | None = None,
        on_completed: Callable[[], object] | None = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed
        self._teardowns: list[Teardown] = []
        self.closed = False

    def next(self, value: T) -> None:
        if not self.closed and self._on_next is not None:
            self._on_next(value)

    def error(self, exc: BaseException) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            if self._on_error is not None:
                self._on_error(exc)
            else:
                _log.error("unhandled stream error", error=repr(exc), code=classify_exception(exc).value)
        finally:
            self._dispose()

    def complete(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            if self._on_completed is not None:
                self._on_completed()
        finally:
            self._dispose()

    def add(self, teardown: Teardown) -> None:
        """Register cleanup to run on close; runs immediately if already closed."""
        if teardown is None:
            return
        if self.closed:
            _run_teardown(teardown)
        else:
            self._teardowns.append(teardown)

    def unsubscribe(self) -> None:
        self.closed = True
        self._dispose()

    def _dispose(self) -> None:
        teardowns, self._teardowns = self._teardowns, []
        for teardown in reversed(teardowns):
            _run_teardown(teardown)


def _run_teardown(teardown: Teardown) -> None:
    if callable(teardown):
        teardown()
    elif teardown is not None:
        teardown.unsubscribe()


# ─────────────────────────────────────────────────────────────────────────────
# Stream
# ─────────────────────────────────────────────────────────────────────────────


class Stream(Generic[T]):
    """Cold stream: every subscription runs the producer anew."""

    __slots__ = ("_producer",)

    def __init__(self, producer: Producer[T]) -> None:
        self._producer = producer

    def subscribe(
        self,
        on_next: Callable[[T], object] | None = None,
        on_error: Callable[[BaseException], object] | None = None,
        on_completed: Callable[[], object] | None = None,
    ) -> Subscriber[T]:
        return self.subscribe_with(Subscriber(on_next, on_error, on_completed))

    def subscribe_with(self, sink: Subscriber[T]) -> Subscriber[T]:
        """Run the producer against an existing subscriber."""
        try:
            teardown = self._producer(sink)
        except Exception as exc:
            sink.error(exc)
            return sink
        sink.add(teardown)
        return sink

    def pipe(self, *operators: Operator) -> Stream[Any]:
        """Apply operators left to right."""
        return reduce(lambda stream, op: op(stream), operators, self)


# ─────────────────────────────────────────────────────────────────────────────
# Subjects
# ─────────────────────────────────────────────────────────────────────────────


class Subject(Stream[T]):
    """Hot multicast source; late subscribers only see later values."""

    __slots__ = ("_sinks", "_stopped")

    def __init__(self) -> None:
        super().__init__(self._attach)
        self._sinks: list[Subscriber[T]] = []
        self._stopped: tuple[BaseException | None] | None = None

    @property
    def observed(self) -> bool:
        return bool(self._sinks)

    def _attach(self, sink: Subscriber[T]) -> Teardown:
        if self._stopped is not None:
            (exc,) = self._stopped
            sink.error(exc) if exc is not None else sink.complete()
            return None
        self._sinks.append(sink)
        self._replay(sink)
        return lambda: self._detach(sink)

    def _replay(self, sink: Subscriber[T]) -> None:
        pass

    def _detach(self, sink: Subscriber[T]) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def next(self, value: T) -> None:
        if self._stopped is not None:
            return
        for sink in list(self._sinks):
            sink.next(value)

    def error(self, exc: BaseException) -> None:
        if self._stopped is not None:
            return
        self._stopped = (exc,)
        sinks, self._sinks = self._sinks, []
        for sink in sinks:
            sink.error(exc)

    def complete(self) -> None:
        if self._stopped is not None:
            return
        self._stopped = (None,)
        sinks, self._sinks = self._sinks, []
        for sink in sinks:
            sink.complete()


class BehaviorSubject(Subject[T]):
    """Subject holding a current value, delivered to each new subscriber."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    def _replay(self, sink: Subscriber[T]) -> None:
        sink.next(self._value)

    def next(self, value: T) -> None:
        if self._stopped is None:
            self._value = value
        super().next(value)


class ReplaySubject(Subject[T]):
    """Subject replaying up to ``buffer_size`` most recent values to new subscribers."""

    __slots__ = ("_buffer",)

    def __init__(self, buffer_size: int | None = None) -> None:
        super().__init__()
        self._buffer: deque[T] = deque(maxlen=buffer_size)

    def _replay(self, sink: Subscriber[T]) -> None:
        for value in list(self._buffer):
            sink.next(value)

    def _attach(self, sink: Subscriber[T]) -> Teardown:
        if self._stopped is not None:
            self._replay(sink)
        return super()._attach(sink)

    def next(self, value: T) -> None:
        if self._stopped is None:
            self._buffer.append(value)
        super().next(value)


# ─────────────────────────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────────────────────────


def of(*values: T) -> Stream[T]:
    """Emit ``values`` synchronously, then complete."""
    return from_iterable(values)


def from_iterable(values: Iterable[T]) -> Stream[T]:
    def produce(sink: Subscriber[T]) -> None:
        for value in values:
            if sink.closed:
                return
            sink.next(value)
        sink.complete()
    return Stream(produce)


def empty() -> Stream[Any]:
    return Stream(lambda sink: sink.complete())


def never() -> Stream[Any]:
    return Stream(lambda sink: None)


def throw(exc: BaseException) -> Stream[Any]:
    return Stream(lambda sink: sink.error(exc))


def defer(factory: Callable[[], object]) -> Stream[Any]:
    """Call ``factory`` at subscription time; its result goes through ``from_source``.

    An exception raised by the factory is delivered as a stream error.
    """
    def produce(sink: Subscriber[Any]) -> None:
        from_source(factory()).subscribe_with(sink)
    return Stream(produce)


def from_awaitable(awaitable: Awaitable[T]) -> Stream[T]:
    """Await once on the running loop; unsubscribing cancels the task."""
    def produce(sink: Subscriber[T]) -> Teardown:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        future = asyncio.ensure_future(awaitable, loop=loop)

        def settle(fut: asyncio.Future[T]) -> None:
            if fut.cancelled():
                sink.error(asyncio.CancelledError())
            elif (exc := fut.exception()) is not None:
                sink.error(exc)
            else:
                sink.next(fut.result())
                sink.complete()

        future.add_done_callback(settle)
        return future.cancel
    return Stream(produce)


def from_async_iterable(iterable: AsyncIterable[T]) -> Stream[T]:
    """Pump an async iterable in a task; unsubscribing cancels the task."""
    def produce(sink: Subscriber[T]) -> Teardown:
        loop = asyncio.get_running_loop()

        async def pump() -> None:
            async for item in iterable:
                sink.next(item)
                if sink.closed:
                    return
            sink.complete()

        def settle(task: asyncio.Task[None]) -> None:
            if not task.cancelled() and (exc := task.exception()) is not None:
                sink.error(exc)

        task = loop.create_task(pump())
        task.add_done_callback(settle)
        return task.cancel
    return Stream(produce)


def from_source(source: object) -> Stream[Any]:
    """Adapt a loader result or input source to a ``Stream``.

    Streams pass through; async iterables and awaitables are driven on the
    running loop; anything else is a single synchronous value.
    """
    match source:
        case Stream():
            return source
        case AsyncIterable():
            return from_async_iterable(source)
        case _ if inspect.isawaitable(source):
            return from_awaitable(source)
        case _:
            return of(source)


# ─────────────────────────────────────────────────────────────────────────────
# Awaiting
# ─────────────────────────────────────────────────────────────────────────────


async def first_value(stream: Stream[T]) -> T:
    """Subscribe, await the first value, then unsubscribe.

    Raises:
        EmptyStreamError: If the stream completes without a value
    """
    future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    def resolve(value: T) -> None:
        if not future.done():
            future.set_result(value)

    def reject(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    subscription = stream.subscribe(resolve, reject, lambda: reject(EmptyStreamError("stream completed without a value")))
    try:
        return await future
    finally:
        subscription.unsubscribe()


async def collect(stream: Stream[T], count: int) -> list[T]:
    """Subscribe and await the first ``count`` values (fewer if the stream completes first)."""
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    items: list[T] = []

    def push(value: T) -> None:
        items.append(value)
        if len(items) >= count and not done.done():
            done.set_result(None)

    def finish() -> None:
        if not done.done():
            done.set_result(None)

    def reject(exc: BaseException) -> None:
        if not done.done():
            done.set_exception(exc)

    if count <= 0:
        return items
    subscription = stream.subscribe(push, reject, finish)
    try:
        await done
    finally:
        subscription.unsubscribe()
    return items[:count]
