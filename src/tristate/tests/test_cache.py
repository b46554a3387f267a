"""Tests for the rolling LRU cache."""

from __future__ import annotations

from tristate.io.cache import DEFAULT_CACHE_SIZE, RollingCache, format_key


def test_cache_basic() -> None:
    """Test get/set and default on miss."""
    cache: RollingCache[int] = RollingCache(3)

    cache.set("a", 1)
    assert cache.get("a") == 1
    assert cache.get("missing") is None
    assert cache.get("missing", 0) == 0
    assert cache.capacity == 3


def test_cache_default_capacity() -> None:
    assert RollingCache().capacity == DEFAULT_CACHE_SIZE == 42


def test_cache_evicts_least_recently_set() -> None:
    """Capacity 2: set a, b, c evicts a."""
    cache: RollingCache[int] = RollingCache(2)

    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_cache_get_promotes() -> None:
    """A read hit moves the key to most recently used, so the other key is evicted."""
    cache: RollingCache[int] = RollingCache(2)

    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert cache.keys() == ["a", "c"]


def test_cache_set_existing_key_refreshes() -> None:
    cache: RollingCache[int] = RollingCache(2)

    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.get("a") == 10
    assert cache.get("b") is None


def test_cache_miss_has_no_side_effect() -> None:
    cache: RollingCache[int] = RollingCache(2)

    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("zzz")

    assert cache.keys() == ["a", "b"]


def test_cache_contains_does_not_promote() -> None:
    cache: RollingCache[int] = RollingCache(2)

    cache.set("a", 1)
    cache.set("b", 2)
    assert "a" in cache
    cache.set("c", 3)

    assert "a" not in cache


def test_cache_zero_capacity() -> None:
    """Capacity 0 stores nothing."""
    cache: RollingCache[int] = RollingCache(0)

    cache.set("a", 1)
    assert cache.get("a") is None
    assert len(cache) == 0


def test_cache_capacity_floored() -> None:
    assert RollingCache(-5).capacity == 0
    assert RollingCache(2.7).capacity == 2


def test_cache_reset() -> None:
    cache: RollingCache[int] = RollingCache(5)
    for i, key in enumerate("abc"):
        cache.set(key, i)

    assert cache.reset() == 3
    assert len(cache) == 0
    assert cache.get("a") is None


def test_cache_reset_with_predicate() -> None:
    """Only entries whose value matches are removed."""
    cache: RollingCache[int] = RollingCache(5)
    for i, key in enumerate("abcd"):
        cache.set(key, i)

    assert cache.reset(lambda v: v % 2 == 0) == 2
    assert cache.keys() == ["b", "d"]
    assert cache.values() == [1, 3]


def test_cache_stats() -> None:
    cache: RollingCache[str] = RollingCache(4)
    cache.set("a", "x")

    assert cache.stats() == {"entries": 1, "capacity": 4}
    assert list(cache) == ["a"]


def test_format_key() -> None:
    """Strings pass through, sequences are joined, None disables caching."""
    assert format_key("user:1") == "user:1"
    assert format_key(["user", 1]) == "user|1"
    assert format_key((1,)) == "1"
    assert format_key([]) == ""
    assert format_key(None) == ""
