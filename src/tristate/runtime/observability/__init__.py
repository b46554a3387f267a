"""Observability - structured logging for streams and diagnostics."""

from .logging import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    MemoryRenderer,
    NoOpRenderer,
    configure_from_settings,
    configure_logging,
    get_logger,
    reset_logging,
    use_renderer,
)

__all__ = [
    "BoundLogger", "LogEntry",
    "LogRenderer", "ConsoleRenderer", "JsonRenderer", "NoOpRenderer", "MemoryRenderer",
    "configure_logging", "configure_from_settings", "use_renderer", "reset_logging", "get_logger",
]
