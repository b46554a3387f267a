"""Push-based stream primitives and operators.

Usage:
    >>> from tristate.runtime.streams import BehaviorSubject, ops
    >>> source = BehaviorSubject(1)
    >>> source.pipe(ops.map(str)).subscribe(print)
    1
"""

from . import operators as ops
from .broadcast import RefCountBroadcast, share_replay
from .stream import (
    BehaviorSubject,
    Operator,
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
    throw,
)

__all__ = [
    # Core
    "Stream", "Subscriber", "Operator", "ops",
    # Subjects
    "Subject", "BehaviorSubject", "ReplaySubject",
    # Creation
    "of", "from_iterable", "empty", "never", "throw", "defer",
    "from_awaitable", "from_async_iterable", "from_source",
    # Sharing
    "RefCountBroadcast", "share_replay",
    # Awaiting
    "first_value", "collect",
]
