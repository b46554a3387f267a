"""Shared fixtures: every test starts with default diagnostics, logging and settings."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from tristate.core import reset_sink
from tristate.foundation.config import clear_settings_cache
from tristate.runtime.observability import MemoryRenderer, reset_logging, use_renderer


@pytest.fixture(autouse=True)
def clean_globals() -> Iterator[None]:
    """Reset the unhandled-error sink and settings cache around each test."""
    reset_sink()
    clear_settings_cache()
    yield
    reset_sink()
    clear_settings_cache()


@pytest.fixture(autouse=True)
def log_output() -> Iterator[MemoryRenderer]:
    """Capture structured log output in memory instead of writing to stderr."""
    renderer = use_renderer(MemoryRenderer())
    yield renderer
    reset_logging()
