"""Cache keys, TTL expiry, prefix deletion and backend selection."""

import redis
from conftest import FakeClock, make_settings

from shopsearch.cache import InMemoryCache, RedisCache, build_cache, cache_key, query_prefix


class FakeRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value.encode("utf-8") if isinstance(value, str) else value

    def scan_iter(self, match=None, count=None):
        prefix = (match or "*").rstrip("*")
        return [key for key in list(self.store) if key.startswith(prefix)]

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


def test_cache_key_is_order_independent_and_prefixed():
    a = cache_key("samsung galaxy s25", {"page": 1, "sortBy": "relevance"})
    b = cache_key("samsung galaxy s25", {"sortBy": "relevance", "page": 1})
    c = cache_key("samsung galaxy s25", {"sortBy": "relevance", "page": 2})

    assert a == b
    assert a != c
    assert a.startswith(query_prefix("samsung galaxy s25"))
    assert c.startswith(query_prefix("samsung galaxy s25"))
    assert not a.startswith(query_prefix("samsung galaxy s24"))


def test_in_memory_cache_expires_entries():
    clock = FakeClock()
    cache = InMemoryCache(clock=clock)

    cache.set("search:a:1", {"products": []}, ttl=60)
    assert cache.get("search:a:1") == {"products": []}

    clock.advance(61)
    assert cache.get("search:a:1") is None


def test_in_memory_delete_prefix_only_touches_one_query():
    cache = InMemoryCache()
    cache.set("search:a:1", {"page": 1}, ttl=60)
    cache.set("search:a:2", {"page": 2}, ttl=60)
    cache.set("search:b:1", {"page": 1}, ttl=60)

    assert cache.delete_prefix("search:a:") == 2
    assert cache.get("search:a:2") is None
    assert cache.get("search:b:1") == {"page": 1}


def test_redis_cache_round_trip_and_prefix_delete():
    cache = RedisCache(FakeRedis())

    cache.set("search:a:1", {"products": [1, 2]}, ttl=60)
    cache.set("search:b:1", {"products": []}, ttl=60)

    assert cache.get("search:a:1") == {"products": [1, 2]}
    assert cache.get("missing") is None
    assert cache.delete_prefix("search:a:") == 1
    assert cache.get("search:a:1") is None


def test_build_cache_disabled():
    assert build_cache(make_settings(cache_enabled=False)) is None


def test_build_cache_falls_back_to_memory(monkeypatch):
    def refuse(self):
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(redis.Redis, "ping", refuse)

    assert isinstance(build_cache(make_settings(cache_enabled=True)), InMemoryCache)
