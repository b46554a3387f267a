"""Foundation - error taxonomy and configuration shared by every layer."""

from .config import (
    EngineSettings,
    LoggingSettings,
    TristateSettings,
    clear_settings_cache,
    get_settings,
)
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
    # Errors
    "ErrorOrigin", "ErrorCode", "classify_exception", "classify_payload",
    "TristateError", "InvalidParamsError", "EnvelopeError", "EmptyStreamError",
    # Config
    "TristateSettings", "EngineSettings", "LoggingSettings", "get_settings", "clear_settings_cache",
]
