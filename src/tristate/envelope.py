"""Response envelope: the closed Loading / Error / Value sum type.

Every stateful stream emits envelopes. Exactly one variant describes a node's
current state at any instant, and envelopes are immutable once produced.
Consume them with ``match`` so every variant is handled:

    >>> match envelope:
    ...     case Loading(): show_spinner()
    ...     case Error(payload): show_error(payload)
    ...     case Value(value): render(value)

``Error`` carries the ``ErrorOrigin`` that captured it; the origin is metadata
and does not take part in equality, so ``Error("err") == Error("err", origin=ErrorOrigin.LOADER)``.
A combined ``Error`` also keeps the constituent ``causes`` it was folded from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, NoReturn, TypeAlias, TypeVar

from tristate.foundation.errors import EnvelopeError, ErrorOrigin

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Loading:
    """A causal event (new input or reload) is being evaluated."""

    def unwrap(self) -> NoReturn:
        raise EnvelopeError("unwrap() on Loading")

    def unwrap_err(self) -> NoReturn:
        raise EnvelopeError("unwrap_err() on Loading")

    def __repr__(self) -> str:
        return "Loading"


@dataclass(frozen=True, slots=True, weakref_slot=True)
class Error(Generic[E]):
    """The evaluation failed with ``payload``."""

    payload: E
    origin: ErrorOrigin | None = field(default=None, compare=False)
    causes: tuple[Error[Any], ...] = field(default=(), compare=False)

    def unwrap(self) -> NoReturn:
        raise EnvelopeError(f"unwrap() on Error: {self.payload!r}")

    def unwrap_err(self) -> E:
        return self.payload

    def __repr__(self) -> str:
        return f"Error({self.payload!r})"


@dataclass(frozen=True, slots=True)
class Value(Generic[T]):
    """The evaluation succeeded with ``value``."""

    value: T

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise EnvelopeError(f"unwrap_err() on Value: {self.value!r}")

    def __repr__(self) -> str:
        return f"Value({self.value!r})"


@dataclass(frozen=True, slots=True)
class Input(Generic[T]):
    """Log-only event: the engine is about to evaluate ``value``."""

    value: T


Envelope: TypeAlias = "Loading | Error[E] | Value[T]"

LOADING = Loading()


def is_loading(envelope: object) -> bool:
    return isinstance(envelope, Loading)


def is_error(envelope: object) -> bool:
    return isinstance(envelope, Error)


def is_value(envelope: object) -> bool:
    return isinstance(envelope, Value)


def as_envelope(result: object) -> Value[object] | Error[object]:
    """Wrap a loader or operator result; an explicit ``Error`` passes through unchanged."""
    match result:
        case Error():
            return result
        case Value():
            return result
        case _:
            return Value(result)


def error_or_false(envelope: Error[E] | Value[T]) -> E | bool:
    """Payload for the ``error`` stream: the error payload, or ``False`` once settled without error."""
    match envelope:
        case Error(payload):
            return payload
        case Value():
            return False
