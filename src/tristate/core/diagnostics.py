"""Unhandled-error diagnostics.

When a node emits an ``Error`` while nothing in its lineage subscribes to an
``error`` stream, a report goes to the global sink. The default sink writes a
structured warning through the package logger; tests and applications can
install their own with ``set_sink``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from tristate.foundation.errors import ErrorOrigin, classify_payload
from tristate.runtime.observability import get_logger

_log = get_logger("tristate.diagnostics")


@dataclass(frozen=True, slots=True)
class UnhandledError:
    """One unhandled error occurrence on a node."""

    name: str
    index: int
    payload: object
    origin: ErrorOrigin | None = None

    @property
    def label(self) -> str:
        return f"{self.name} #{self.index}"


UnhandledErrorSink: TypeAlias = Callable[[UnhandledError], None]


def warn_unhandled(report: UnhandledError) -> None:
    """Default sink: structured warning naming the node and its lineage index."""
    _log.warning(
        f"unhandled error in stateful stream '{report.label}'",
        node=report.name,
        index=report.index,
        error=repr(report.payload),
        origin=report.origin.value if report.origin else None,
        code=classify_payload(report.payload).value,
        hint="subscribe to the 'error' stream to handle and silence these errors",
    )


# Global sink
_sink: UnhandledErrorSink | None = None


def get_sink() -> UnhandledErrorSink:
    """Get the installed sink (the logging warning if none was set)."""
    return _sink if _sink is not None else warn_unhandled


def set_sink(sink: UnhandledErrorSink) -> None:
    global _sink
    _sink = sink


def reset_sink() -> None:
    """Restore the default sink (useful for testing)."""
    global _sink
    _sink = None


def report_unhandled(report: UnhandledError) -> None:
    get_sink()(report)


def call_log_hook(hook: Callable[[object, str, int], object], event: object, name: str, index: int) -> None:
    """Call a node's ``log`` hook; a raising hook is logged and the stream carries on."""
    try:
        hook(event, name, index)
    except Exception as exc:
        _log.exception("log hook failed", exc, node=name, index=index)
