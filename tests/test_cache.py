"""
Tests for the query cache.
"""

from graph_tutor.cache import DEFAULT_TTL_MS, QueryCache


class TestQueryCache:
    """Tests for the QueryCache class."""

    def test_default_ttl(self):
        """Test the default TTL is 30 seconds."""
        cache = QueryCache()

        assert cache.ttl_ms == DEFAULT_TTL_MS == 30_000
        assert len(cache) == 0

    def test_get_missing_key(self, cache):
        """Test get returns None for a key never set."""
        assert cache.get("nope") is None

    def test_set_then_get_within_ttl(self, cache, clock):
        """Test a value is returned before its TTL elapses."""
        cache.set("k", {"answer": 42})
        clock.advance(29.999)

        assert cache.get("k") == {"answer": 42}

    def test_get_after_ttl_returns_none(self, cache, clock):
        """Test a value is absent once now reaches its expiry instant."""
        cache.set("k", "v")
        clock.advance(30)

        assert cache.get("k") is None

    def test_expired_entry_evicted_on_lookup(self, cache, clock):
        """Test the lookup that finds an expired entry removes it."""
        cache.set("k", "v")
        clock.advance(31)

        assert len(cache) == 1
        cache.get("k")
        assert len(cache) == 0

    def test_set_overwrites_and_resets_expiry(self, cache, clock):
        """Test set replaces the value and restarts its TTL."""
        cache.set("k", "old")
        clock.advance(20)
        cache.set("k", "new")
        clock.advance(20)

        assert cache.get("k") == "new"

    def test_per_call_ttl(self, cache, clock):
        """Test an explicit TTL overrides the instance default."""
        cache.set("short", "v", ttl_ms=500)
        clock.advance(0.5)

        assert cache.get("short") is None

    def test_instance_ttl_override(self, clock):
        """Test the TTL can be overridden at construction."""
        cache = QueryCache(ttl_ms=1_000, clock=clock)
        cache.set("k", "v")
        clock.advance(1)

        assert cache.get("k") is None

    def test_invalidate_all_clears_every_entry(self, cache):
        """Test invalidate_all drops all entries."""
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate_all()

        assert cache.get("a") is None
        assert cache.get("b") is None
        assert len(cache) == 0

    def test_invalidate_all_is_idempotent(self, cache):
        """Test invalidating twice leaves the same empty cache as once."""
        cache.set("a", 1)

        cache.invalidate_all()
        assert len(cache) == 0
        cache.invalidate_all()
        assert len(cache) == 0
        assert cache.get("a") is None

    def test_stats_counters(self, cache):
        """Test hits, misses and invalidations are counted."""
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        cache.invalidate_all()

        stats = cache.stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["invalidations"] == 1
        assert stats["entries"] == 0
        assert stats["ttl_ms"] == 30_000
