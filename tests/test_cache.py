"""Tests for the bounded report cache."""

from cache import TTLCache


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_hit_before_expiry(self):
        ticker = Ticker()
        cache = TTLCache(ttl=300, clock=ticker)
        cache.set("k", {"total": 1})
        ticker.now = 299
        assert cache.get("k") == {"total": 1}
        assert "k" in cache

    def test_miss_after_expiry(self):
        ticker = Ticker()
        cache = TTLCache(ttl=300, clock=ticker)
        cache.set("k", 1)
        ticker.now = 300
        assert cache.get("k") is None
        assert cache.get("k", "fallback") == "fallback"
        assert len(cache) == 0

    def test_purge_removes_only_expired(self):
        ticker = Ticker()
        cache = TTLCache(ttl=10, clock=ticker)
        cache.set("old", 1)
        ticker.now = 5
        cache.set("new", 2)
        ticker.now = 12
        assert cache.purge() == 1
        assert "new" in cache
        assert "old" not in cache

    def test_evicts_oldest_when_full(self):
        cache = TTLCache(ttl=60, maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        cache.set("c", 4)
        assert cache.get("b") is None
        assert cache.get("a") == 3
        assert cache.get("c") == 4

    def test_clear(self):
        cache = TTLCache()
        cache.set(("net-pay", 1), 1)
        cache.clear()
        assert len(cache) == 0
