"""Tests for the in-process TTL cache."""

import pytest

from community.cache import (
    CACHE_TTL,
    clear_cache,
    get_cache_stats,
    get_cached,
    invalidate_cache,
    reset_cache,
    set_cached,
)


@pytest.fixture(autouse=True)
def fresh_cache():
    reset_cache()
    yield
    reset_cache()


class TestCache:
    """Tests for get, set and invalidation."""

    def test_set_and_get(self):
        """Stored values are returned until invalidated."""
        set_cached("projects:all", [1, 2], CACHE_TTL.SHORT)
        assert get_cached("projects:all") == [1, 2]
        invalidate_cache("projects:all")
        assert get_cached("projects:all") is None

    def test_missing_key(self):
        """Unknown keys return None."""
        assert get_cached("nope") is None

    def test_zero_ttl_never_served(self):
        """An entry whose TTL has already run out is not served."""
        set_cached("short", "value", ttl=0)
        assert get_cached("short") is None

    def test_clear_by_pattern(self):
        """Clearing by pattern drops only matching keys."""
        set_cached("tags:all", [])
        set_cached("tags:popular:20", [])
        set_cached("recordings:all", [])
        assert clear_cache("tags:") == 2
        assert get_cached("recordings:all") == []

    def test_clear_everything(self):
        """Clearing without a pattern empties the cache."""
        set_cached("a", 1)
        set_cached("b", 2)
        assert clear_cache() == 2
        assert get_cache_stats()["size"] == 0


class TestCacheStats:
    """Tests for get_cache_stats."""

    def test_hit_rate(self):
        """Hits and misses are counted."""
        set_cached("a", 1)
        get_cached("a")
        get_cached("a")
        get_cached("b")
        stats = get_cache_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["sets"] == 1
        assert stats["hit_rate"] == 0.667

    def test_empty_stats(self):
        """A fresh cache has a zero hit rate."""
        assert get_cache_stats() == {
            "hits": 0, "misses": 0, "sets": 0, "deletes": 0, "clears": 0, "size": 0, "hit_rate": 0.0,
        }
