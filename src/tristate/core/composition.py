"""Envelope-level operators behind ``pipe_value`` and ``pipe_error``.

Both route one kind of envelope through caller operators and let everything
else bypass untouched, merging the two back into one envelope stream over a
single upstream subscription. Each routed payload runs through its own small
pipeline, queued in arrival order, so a failure inside the operators becomes
an ``Error`` for that payload only and the node keeps going.
"""

from __future__ import annotations

from typing import Any

from tristate.envelope import Error, Value, as_envelope, is_error, is_value
from tristate.foundation.errors import ErrorOrigin
from tristate.runtime.streams import Operator, Stream, of, ops


def transform_failure(exc: BaseException) -> Stream[Error[BaseException]]:
    return of(Error(exc, origin=ErrorOrigin.TRANSFORM))


def over_values(*operators: Operator) -> Operator:
    """Apply ``operators`` to unwrapped success payloads; Loading and Error bypass."""
    def per_value(envelope: Value[Any]) -> Stream[Any]:
        return of(envelope.value).pipe(*operators, ops.map(as_envelope), ops.catch(transform_failure))
    return ops.route(is_value, ops.concat_map(per_value))


def over_errors(*operators: Operator) -> Operator:
    """Apply ``operators`` to unwrapped error payloads and re-wrap the results as ``Error``.

    An operator may emit an explicit ``Value`` (or ``Error``) envelope, which is kept as-is.
    """
    def per_error(envelope: Error[Any]) -> Stream[Any]:
        def rewrap(payload: object) -> Error[Any] | Value[Any]:
            match payload:
                case Error() | Value():
                    return payload
                case _:
                    return Error(payload, origin=envelope.origin)
        return of(envelope.payload).pipe(*operators, ops.map(rewrap), ops.catch(transform_failure))
    return ops.route(is_error, ops.concat_map(per_error))
