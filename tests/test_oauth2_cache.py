# Tests for the TTL client cache.

from oauth2.cache import ClientCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestClientCache:

    def test_get_returns_fresh_entry(self):
        clock = FakeClock()
        cache = ClientCache(ttl_seconds=300, clock=clock)
        cache.set("a", "snapshot")
        clock.now += 299
        assert cache.get("a") == "snapshot"

    def test_expired_entry_evicted_on_read(self):
        clock = FakeClock()
        cache = ClientCache(ttl_seconds=300, clock=clock)
        cache.set("a", "snapshot")
        clock.now += 300
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_missing_key(self):
        assert ClientCache().get("nope") is None

    def test_cleanup_removes_only_expired(self):
        clock = FakeClock()
        cache = ClientCache(ttl_seconds=60, clock=clock)
        cache.set("old-1", 1)
        cache.set("old-2", 2)
        clock.now += 30
        cache.set("new", 3)
        clock.now += 40

        assert cache.cleanup() == 2
        assert len(cache) == 1
        assert "new" in cache

    def test_invalidate_and_clear(self):
        cache = ClientCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.invalidate("missing")
        cache.clear()
        assert len(cache) == 0

    def test_set_refreshes_insertion_time(self):
        clock = FakeClock()
        cache = ClientCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.now += 8
        cache.set("a", 2)
        clock.now += 8
        assert cache.get("a") == 2
