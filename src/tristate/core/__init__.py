"""Core - stateful engine, nodes, composition and combination."""

from .combine import combine, fold_envelopes
from .composition import over_errors, over_values
from .diagnostics import (
    UnhandledError,
    UnhandledErrorSink,
    get_sink,
    report_unhandled,
    reset_sink,
    set_sink,
    warn_unhandled,
)
from .engine import stateful
from .factory import StatefulFactory
from .lineage import ErrorCounter, Lineage
from .node import LogHook, StatefulObserver, StatefulStream
from .params import OverlapPolicy, StatefulParams

__all__ = [
    # Engine
    "stateful", "StatefulParams", "OverlapPolicy", "StatefulFactory",
    # Nodes
    "StatefulStream", "StatefulObserver", "LogHook", "Lineage", "ErrorCounter",
    # Composition
    "over_values", "over_errors", "combine", "fold_envelopes",
    # Diagnostics
    "UnhandledError", "UnhandledErrorSink", "get_sink", "set_sink", "reset_sink",
    "report_unhandled", "warn_unhandled",
]
