"""Error handling for tristate.

- ErrorOrigin: where a captured failure came from (source / loader / transform)
- ErrorCode / classify_exception: coarse classification for diagnostics
- TristateError and subclasses: API misuse
"""

from .errors import (
    EmptyStreamError,
    EnvelopeError,
    ErrorCode,
    ErrorOrigin,
    InvalidParamsError,
    TristateError,
    classify_exception,
    classify_payload,
)

__all__ = [
    "ErrorOrigin", "ErrorCode", "classify_exception", "classify_payload",
    "TristateError", "InvalidParamsError", "EnvelopeError", "EmptyStreamError",
]
