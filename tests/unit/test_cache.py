"""
Unit Tests - Cache Manager
"""
import json

import pytest

from marketplace_dashboard.serving.cache import CacheManager, cache_get, cache_set, get_redis


class TestCacheManager:
    """Tests for CacheManager against fakeredis"""

    async def test_get_or_set_computes_once(self, dashboard_cache):
        calls = []

        async def factory():
            calls.append(1)
            return {"health": None, "active_total": 0}

        first = await dashboard_cache.get_or_set("order_status:all:2025-06-09:2025-06-15", factory)
        second = await dashboard_cache.get_or_set("order_status:all:2025-06-09:2025-06-15", factory)

        assert first == second == {"health": None, "active_total": 0}
        assert len(calls) == 1

    async def test_keys_are_namespaced(self, dashboard_cache, fake_redis):
        await dashboard_cache.set("order_status:brand-1:a:b", {"x": 1})

        raw = await fake_redis.get("dashboard:order_status:brand-1:a:b")
        assert json.loads(raw) == {"x": 1}

    async def test_ttl_applied(self, fake_redis):
        cache = CacheManager("dashboard", default_ttl=300, client=fake_redis)

        await cache.get_or_set("k", _constant({"a": 1}))

        ttl = await fake_redis.ttl("dashboard:k")
        assert 0 < ttl <= 300

    async def test_explicit_ttl_wins(self, dashboard_cache, fake_redis):
        await dashboard_cache.get_or_set("k", _constant([1, 2]), ttl=60)

        assert 0 < await fake_redis.ttl("dashboard:k") <= 60

    async def test_distinct_keys_do_not_collide(self, dashboard_cache):
        await dashboard_cache.set("top_conversion:all:a:b:view_to_order:desc:1:10", {"page": 1})
        await dashboard_cache.set("top_conversion:all:a:b:view_to_order:desc:2:10", {"page": 2})

        assert await dashboard_cache.get("top_conversion:all:a:b:view_to_order:desc:1:10") == {"page": 1}
        assert await dashboard_cache.get("top_conversion:all:a:b:view_to_order:desc:2:10") == {"page": 2}

    async def test_non_json_values_fall_back_to_str(self, fake_redis):
        stored = await cache_set("bad", {"f": object}, client=fake_redis)

        assert stored is True
        assert await cache_get("bad", client=fake_redis) == {"f": str(object)}

    def test_uninitialized_client_raises(self):
        with pytest.raises(RuntimeError):
            get_redis()


def _constant(value):
    async def factory():
        return value
    return factory
