"""Tristate - loading / error / value streams for asynchronous data sources.

Turns a source of inputs plus a loader into one stream of envelopes that
always says what is going on: ``Loading`` while a load is in flight, then
``Error`` or ``Value``. Failures never terminate the stream, results are
memoized per key in a bounded cache, and ``reload()`` drops that cache and
evaluates the latest input again.

Quick Start:
    >>> from tristate import stateful, BehaviorSubject
    >>>
    >>> ids = BehaviorSubject(1)
    >>> user = stateful(input=ids, loader=fetch_user, cache_key=lambda i: [i], name="user")
    >>> user.subscribe(next=render, error=show_error, pending=show_spinner)
    >>> ids.next(2)     # Loading, then Value(user 2)
    >>> user.reload()   # fresh cache generation, user 2 is fetched again

Composition:
    >>> from tristate import ops
    >>> names = user.pipe_value(ops.map(lambda u: u.name))
    >>> friendly = user.pipe_error(ops.map(lambda exc: f"could not load: {exc}"))

Combination:
    >>> from tristate import combine
    >>> page = combine([user, settings], lambda values: dict(zip(["user", "settings"], values)))

Configuration (environment):
    TRISTATE_ENGINE_CACHE_SIZE=100
    TRISTATE_ENGINE_MAP_OPERATOR=concat
    TRISTATE_LOG_LEVEL=DEBUG
    TRISTATE_LOG_FORMAT=json
"""

from __future__ import annotations

__version__ = "0.1.0"

# Envelopes
from .envelope import LOADING, Envelope, Error, Input, Loading, Value, is_error, is_loading, is_value

# Core
from .core import (
    LogHook,
    OverlapPolicy,
    StatefulFactory,
    StatefulObserver,
    StatefulParams,
    StatefulStream,
    UnhandledError,
    combine,
    get_sink,
    reset_sink,
    set_sink,
    stateful,
)

# Errors
from .foundation.errors import (
    EmptyStreamError,
    EnvelopeError,
    ErrorCode,
    ErrorOrigin,
    InvalidParamsError,
    TristateError,
    classify_exception,
)

# Config
from .foundation.config import TristateSettings, clear_settings_cache, get_settings

# Cache
from .io.cache import DEFAULT_CACHE_SIZE, RollingCache

# Streams
from .runtime.streams import (
    BehaviorSubject,
    ReplaySubject,
    Stream,
    Subject,
    Subscriber,
    collect,
    first_value,
    from_source,
    of,
    ops,
)

# Logging
from .runtime.observability import configure_logging, get_logger

__all__ = [
    "__version__",
    # Envelopes
    "Loading",
    "Error",
    "Value",
    "Input",
    "Envelope",
    "LOADING",
    "is_loading",
    "is_error",
    "is_value",
    # Core
    "stateful",
    "StatefulParams",
    "OverlapPolicy",
    "StatefulStream",
    "StatefulObserver",
    "StatefulFactory",
    "LogHook",
    "combine",
    # Diagnostics
    "UnhandledError",
    "get_sink",
    "set_sink",
    "reset_sink",
    # Errors
    "ErrorOrigin",
    "ErrorCode",
    "TristateError",
    "InvalidParamsError",
    "EnvelopeError",
    "EmptyStreamError",
    "classify_exception",
    # Config
    "TristateSettings",
    "get_settings",
    "clear_settings_cache",
    # Cache
    "RollingCache",
    "DEFAULT_CACHE_SIZE",
    # Streams
    "Stream",
    "Subject",
    "BehaviorSubject",
    "ReplaySubject",
    "Subscriber",
    "of",
    "from_source",
    "first_value",
    "collect",
    "ops",
    # Logging
    "configure_logging",
    "get_logger",
]
