"""IO - storage layers (cache generations)."""

from .cache import DEFAULT_CACHE_SIZE, RollingCache, format_key

__all__ = ["DEFAULT_CACHE_SIZE", "RollingCache", "format_key"]
