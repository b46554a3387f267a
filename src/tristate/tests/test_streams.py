"""Tests for the push stream primitives and operators.

Validates:
- Subscription lifetimes and teardown order
- Subject variants
- Overlap policies of the flattening operators
- Ref-counted sharing with latest-value replay
- Asyncio-driven sources and the awaitable helpers
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from tristate.foundation.errors import EmptyStreamError
from tristate.runtime.streams import (
    BehaviorSubject,
    RefCountBroadcast,
    ReplaySubject,
    Stream,
    Subject,
    Subscriber,
    collect,
    defer,
    empty,
    first_value,
    from_async_iterable,
    from_awaitable,
    from_iterable,
    from_source,
    never,
    of,
    ops,
    throw,
)


# ═════════════════════════════════════════════════════════════════════════════
# Core
# ═════════════════════════════════════════════════════════════════════════════


def test_of_map_filter() -> None:
    values: list[int] = []
    completed: list[bool] = []

    of(1, 2, 3).pipe(ops.map(lambda x: x * 10), ops.filter(lambda x: x > 10)).subscribe(
        values.append, None, lambda: completed.append(True),
    )

    assert values == [20, 30]
    assert completed == [True]


def test_teardowns_run_once_newest_first() -> None:
    order: list[str] = []

    def produce(sink: Subscriber[int]) -> None:
        sink.add(lambda: order.append("first"))
        sink.add(lambda: order.append("second"))

    sub = Stream(produce).subscribe()
    sub.unsubscribe()
    sub.unsubscribe()

    assert order == ["second", "first"]
    assert sub.closed


def test_producer_exception_becomes_error() -> None:
    errors: list[BaseException] = []

    def produce(sink: Subscriber[int]) -> None:
        raise RuntimeError("boom")

    Stream(produce).subscribe(None, errors.append)

    assert [str(e) for e in errors] == ["boom"]


def test_nothing_delivered_after_close() -> None:
    values: list[int] = []
    subject: Subject[int] = Subject()

    sub = subject.subscribe(values.append)
    subject.next(1)
    sub.unsubscribe()
    subject.next(2)

    assert values == [1]
    assert not subject.observed


def test_creation_helpers() -> None:
    values: list[object] = []
    errors: list[BaseException] = []
    completed: list[str] = []

    empty().subscribe(values.append, None, lambda: completed.append("empty"))
    never().subscribe(values.append, None, lambda: completed.append("never"))
    throw(ValueError("bad")).subscribe(values.append, errors.append)
    from_iterable([1, 2]).subscribe(values.append)
    defer(lambda: 3).subscribe(values.append)

    assert values == [1, 2, 3]
    assert completed == ["empty"]
    assert isinstance(errors[0], ValueError)


def test_defer_factory_exception_is_stream_error() -> None:
    errors: list[BaseException] = []

    def factory() -> int:
        raise KeyError("gone")

    defer(factory).subscribe(None, errors.append)

    assert isinstance(errors[0], KeyError)


# ═════════════════════════════════════════════════════════════════════════════
# Subjects
# ═════════════════════════════════════════════════════════════════════════════


def test_behavior_subject_replays_current_value() -> None:
    subject = BehaviorSubject(1)
    subject.next(2)
    values: list[int] = []

    subject.subscribe(values.append)
    subject.next(3)

    assert values == [2, 3]
    assert subject.value == 3


def test_replay_subject_buffer() -> None:
    subject: ReplaySubject[int] = ReplaySubject(2)
    for i in range(4):
        subject.next(i)
    values: list[int] = []

    subject.subscribe(values.append)

    assert values == [2, 3]


def test_stopped_subject_notifies_late_subscribers() -> None:
    subject: Subject[int] = Subject()
    subject.complete()
    completed: list[bool] = []

    subject.subscribe(None, None, lambda: completed.append(True))
    subject.next(1)

    assert completed == [True]


# ═════════════════════════════════════════════════════════════════════════════
# Operators
# ═════════════════════════════════════════════════════════════════════════════


def test_map_exception_is_stream_error() -> None:
    errors: list[BaseException] = []

    of(0).pipe(ops.map(lambda x: 1 / x)).subscribe(None, errors.append)

    assert isinstance(errors[0], ZeroDivisionError)


def test_tap_hooks() -> None:
    seen: list[str] = []

    of(1).pipe(ops.tap(
        lambda v: seen.append(f"next {v}"),
        on_completed=lambda: seen.append("completed"),
        on_subscribe=lambda: seen.append("subscribe"),
    )).subscribe()

    assert seen == ["subscribe", "next 1", "completed"]


def test_finalize_runs_on_unsubscribe() -> None:
    finalized: list[bool] = []

    sub = never().pipe(ops.finalize(lambda: finalized.append(True))).subscribe()
    assert finalized == []
    sub.unsubscribe()

    assert finalized == [True]


def test_start_with_and_skip_take() -> None:
    values: list[int] = []

    of(3, 4, 5, 6).pipe(ops.start_with(1, 2), ops.skip(1), ops.take(3)).subscribe(values.append)

    assert values == [2, 3, 4]


def test_catch_switches_to_fallback() -> None:
    values: list[object] = []

    throw(RuntimeError("down")).pipe(ops.catch(lambda exc: of(f"recovered: {exc}"))).subscribe(values.append)

    assert values == ["recovered: down"]


def test_take_until() -> None:
    values: list[int] = []
    completed: list[bool] = []
    source: Subject[int] = Subject()
    stop: Subject[None] = Subject()

    source.pipe(ops.take_until(stop)).subscribe(values.append, None, lambda: completed.append(True))
    source.next(1)
    stop.next(None)
    source.next(2)

    assert values == [1]
    assert completed == [True]
    assert not source.observed


def test_distinct_until_changed() -> None:
    values: list[int] = []

    of(1, 1, 2, 2, 1).pipe(ops.distinct_until_changed()).subscribe(values.append)

    assert values == [1, 2, 1]


def test_combine_latest_waits_for_all() -> None:
    values: list[tuple[object, ...]] = []
    left: Subject[int] = Subject()
    right: Subject[str] = Subject()

    ops.combine_latest(left, right).subscribe(values.append)
    left.next(1)
    right.next("a")
    left.next(2)

    assert values == [(1, "a"), (2, "a")]


def test_merge_and_concat() -> None:
    merged: list[int] = []
    concatenated: list[int] = []

    ops.merge(of(1, 2), of(3)).subscribe(merged.append)
    ops.concat(of(1), of(2, 3)).subscribe(concatenated.append)

    assert merged == [1, 2, 3]
    assert concatenated == [1, 2, 3]


# ─────────────────────────────────────────────────────────────────────────────
# Flattening
# ─────────────────────────────────────────────────────────────────────────────


def test_switch_map_unsubscribes_previous_inner() -> None:
    values: list[str] = []
    outer: Subject[Subject[str]] = Subject()
    first: Subject[str] = Subject()
    second: Subject[str] = Subject()

    outer.pipe(ops.switch_map(lambda inner: inner)).subscribe(values.append)
    outer.next(first)
    first.next("a")
    outer.next(second)
    first.next("stale")
    second.next("b")

    assert values == ["a", "b"]
    assert not first.observed


def test_merge_map_keeps_all_inners() -> None:
    values: list[str] = []
    outer: Subject[Subject[str]] = Subject()
    first: Subject[str] = Subject()
    second: Subject[str] = Subject()

    outer.pipe(ops.merge_map(lambda inner: inner)).subscribe(values.append)
    outer.next(first)
    outer.next(second)
    second.next("b")
    first.next("a")

    assert values == ["b", "a"]


def test_concat_map_queues_in_order() -> None:
    values: list[str] = []
    outer: Subject[Subject[str]] = Subject()
    first: Subject[str] = Subject()
    second: Subject[str] = Subject()

    outer.pipe(ops.concat_map(lambda inner: inner)).subscribe(values.append)
    outer.next(first)
    outer.next(second)
    second.next("too early")
    first.next("a")
    first.complete()
    second.next("b")

    assert values == ["a", "b"]


def test_connect_subscribes_branches_before_upstream() -> None:
    values: list[str] = []

    of(1, 2).pipe(ops.connect(lambda shared: ops.merge(
        shared.pipe(ops.map(lambda x: f"first {x}")),
        shared.pipe(ops.map(lambda x: f"second {x}")),
    ))).subscribe(values.append)

    assert values == ["first 1", "second 1", "first 2", "second 2"]


def test_route_splits_and_merges() -> None:
    values: list[int] = []
    subscriptions: list[int] = []

    source = of(1, 2, 3, 4).pipe(ops.tap(on_subscribe=lambda: subscriptions.append(1)))
    source.pipe(ops.route(lambda x: x % 2 == 0, ops.map(lambda x: x * 100))).subscribe(values.append)

    assert values == [1, 200, 3, 400]
    assert subscriptions == [1]


# ═════════════════════════════════════════════════════════════════════════════
# Sharing
# ═════════════════════════════════════════════════════════════════════════════


def test_share_replay_single_upstream_and_replay() -> None:
    connections: list[int] = []
    source = BehaviorSubject(1)
    shared = source.pipe(ops.tap(on_subscribe=lambda: connections.append(1)), ops.share_replay())
    a: list[int] = []
    b: list[int] = []

    sub_a = shared.subscribe(a.append)
    sub_b = shared.subscribe(b.append)
    source.next(2)

    assert connections == [1]
    assert a == [1, 2]
    assert b == [1, 2]

    sub_a.unsubscribe()
    assert source.observed
    sub_b.unsubscribe()
    assert not source.observed


def test_share_replay_resets_after_last_unsubscribe() -> None:
    source: Subject[int] = Subject()
    broadcast = RefCountBroadcast(source)
    values: list[int] = []

    sub = broadcast.stream.subscribe(values.append)
    source.next(1)
    sub.unsubscribe()
    assert not broadcast.connected

    broadcast.stream.subscribe(values.append)

    # Nothing retained: no replay of 1
    assert values == [1]
    assert broadcast.ref_count == 1


def test_share_replay_resets_on_error() -> None:
    source: Subject[int] = Subject()
    broadcast = RefCountBroadcast(source)
    errors: list[BaseException] = []

    broadcast.stream.subscribe(None, errors.append)
    source.error(RuntimeError("down"))

    assert len(errors) == 1
    assert not broadcast.connected
    assert broadcast.ref_count == 0


# ═════════════════════════════════════════════════════════════════════════════
# Asyncio sources
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_from_awaitable() -> None:
    async def load() -> int:
        await asyncio.sleep(0)
        return 7

    assert await first_value(from_awaitable(load())) == 7


@pytest.mark.asyncio
async def test_from_awaitable_failure_is_stream_error() -> None:
    async def load() -> int:
        raise LookupError("nope")

    with pytest.raises(LookupError):
        await first_value(from_awaitable(load()))


@pytest.mark.asyncio
async def test_unsubscribe_cancels_task() -> None:
    cancelled: list[bool] = []

    async def slow() -> int:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return 1

    sub = from_awaitable(slow()).subscribe()
    await asyncio.sleep(0)
    sub.unsubscribe()
    await asyncio.sleep(0)

    assert cancelled == [True]


@pytest.mark.asyncio
async def test_switch_map_cancels_running_coroutine() -> None:
    cancelled: list[int] = []
    source: Subject[int] = Subject()

    async def load(x: int) -> int:
        try:
            await asyncio.sleep(0.01)
        except asyncio.CancelledError:
            cancelled.append(x)
            raise
        return x

    pending = asyncio.ensure_future(collect(source.pipe(ops.switch_map(load)), 1))
    await asyncio.sleep(0)
    source.next(1)
    await asyncio.sleep(0)
    source.next(2)

    assert await pending == [2]
    assert cancelled == [1]


@pytest.mark.asyncio
async def test_from_async_iterable() -> None:
    async def numbers() -> AsyncIterator[int]:
        for i in range(3):
            await asyncio.sleep(0)
            yield i

    assert await collect(from_async_iterable(numbers()), 5) == [0, 1, 2]


@pytest.mark.asyncio
async def test_from_source_adapts_coroutines() -> None:
    async def load() -> str:
        return "done"

    assert await first_value(from_source(load())) == "done"
    assert await first_value(from_source(of(1))) == 1
    assert await first_value(from_source("plain")) == "plain"


@pytest.mark.asyncio
async def test_first_value_on_empty_stream() -> None:
    with pytest.raises(EmptyStreamError):
        await first_value(empty())


@pytest.mark.asyncio
async def test_debounce_emits_latest() -> None:
    source: Subject[int] = Subject()
    values: list[int] = []

    source.pipe(ops.debounce(0.01)).subscribe(values.append)
    source.next(1)
    source.next(2)
    await asyncio.sleep(0.05)
    source.next(3)
    await asyncio.sleep(0.05)

    assert values == [2, 3]
