"""Error taxonomy for tri-state streams.

Failures inside a stream never escape as exceptions; they are captured into
``Error`` envelopes tagged with an ``ErrorOrigin``. The exceptions defined here
are raised only for misuse of the API itself (bad construction options,
unwrapping the wrong envelope variant, awaiting an empty stream).
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache


class ErrorOrigin(StrEnum):
    """Where in a lineage a failure was captured."""
    SOURCE = "source"        # input stream failed before reaching the loader
    LOADER = "loader"        # loader (or cache key function) failed
    TRANSFORM = "transform"  # operator inside pipe_value / pipe_error / combine reducer failed


class ErrorCode(StrEnum):
    """Coarse classification of captured exceptions, used in diagnostics output."""
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_STATE = "INVALID_STATE"
    LOADER_ERROR = "LOADER_ERROR"
    UNKNOWN = "UNKNOWN"


# Flattened pattern -> code mapping, checked in order
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "cancel": ErrorCode.CANCELLED,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "notfound": ErrorCode.NOT_FOUND,
    "keyerror": ErrorCode.NOT_FOUND,
    "lookup": ErrorCode.NOT_FOUND,
    "validation": ErrorCode.INVALID_INPUT,
    "value": ErrorCode.INVALID_INPUT,
    "type": ErrorCode.INVALID_INPUT,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES)


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.LOADER_ERROR


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via pattern matching on name/message."""
    if isinstance(exc, TristateError):
        return exc.code
    return _classify_cached(f"{type(exc).__name__} {exc}")


def classify_payload(payload: object) -> ErrorCode:
    """Classify an Error envelope payload, which need not be an exception."""
    return classify_exception(payload) if isinstance(payload, BaseException) else ErrorCode.UNKNOWN


class TristateError(Exception):
    """Base class for errors raised by the tristate API itself."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidParamsError(TristateError):
    """Construction options failed validation."""

    code = ErrorCode.INVALID_PARAMS


class EnvelopeError(TristateError):
    """An envelope was unwrapped as a variant it is not."""

    code = ErrorCode.INVALID_STATE


class EmptyStreamError(TristateError):
    """A stream completed before producing the value being awaited."""

    code = ErrorCode.NOT_FOUND
