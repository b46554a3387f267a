"""Combine several tri-state streams into one."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from tristate.envelope import LOADING, Error, Loading, Value, as_envelope, is_error, is_loading
from tristate.foundation.errors import ErrorOrigin
from tristate.runtime.streams import of, ops

from .lineage import Lineage
from .node import LogHook, StatefulStream


def fold_envelopes(envelopes: tuple[Any, ...], reducer: Callable[[list[Any]], object]) -> Loading | Error[Any] | Value[Any]:
    """Any Loading wins, then any Error (payloads positionally, ``False`` elsewhere), else the reduced Value."""
    if any(is_loading(e) for e in envelopes):
        return LOADING
    if errors := [e for e in envelopes if is_error(e)]:
        payloads = [e.payload if is_error(e) else False for e in envelopes]
        return Error(payloads, origin=errors[0].origin, causes=tuple(errors))
    try:
        return as_envelope(reducer([e.value for e in envelopes]))
    except Exception as exc:
        return Error(exc, origin=ErrorOrigin.TRANSFORM)


def combine(
    nodes: Iterable[StatefulStream[Any]],
    reducer: Callable[[list[Any]], object],
    *,
    name: str | None = None,
    log: LogHook | None = None,
) -> StatefulStream[Any]:
    """Combine the latest envelopes of ``nodes`` into one node.

    Args:
        nodes: Input nodes; none of them emit until each has emitted once
        reducer: Called with the list of values when every input holds a Value
        name: Display name, defaults to ``"[name1, name2]"``
        log: Diagnostics hook for the combined node

    Returns:
        Root node (index 0) whose ``reload`` reloads every input and whose
        ``error`` subscription counts as handled for every input's lineage
    """
    nodes = tuple(nodes)
    raw = ops.combine_latest(*(node.raw for node in nodes)) if nodes else of(())

    def reload() -> None:
        for node in nodes:
            node.reload()

    return StatefulStream(
        raw.pipe(ops.map(lambda envelopes: fold_envelopes(envelopes, reducer))),
        name=name if name is not None else f"[{', '.join(node.name for node in nodes)}]",
        lineage=Lineage.merge(node.lineage for node in nodes),
        reload=reload,
        log=log,
    )
