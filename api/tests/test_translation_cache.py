"""Tests for the TTL cache used for translated chunks and translation memory."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from lingua_kb.services.translation.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_get_set_and_stats(self):
        cache = TTLCache(maxsize=10)

        assert cache.get("missing") is None
        cache.set("key", "value")
        assert cache.get("key") == "value"

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1
        assert stats["hit_ratio"] == 0.5

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(maxsize=10, clock=clock)

        cache.set("key", "value", ttl=60)
        clock.now += 59
        assert cache.get("key") == "value"

        clock.now += 1
        assert cache.get("key") is None
        assert "key" not in cache.cache

    def test_entries_without_ttl_never_expire(self):
        clock = FakeClock()
        cache = TTLCache(maxsize=10, clock=clock)

        cache.set("key", "value")
        clock.now += 10**9

        assert cache.get("key") == "value"

    def test_per_entry_ttl_overrides_default(self):
        clock = FakeClock()
        cache = TTLCache(maxsize=10, default_ttl=10, clock=clock)

        cache.set("short", "a")
        cache.set("long", "b", ttl=100)
        clock.now += 50

        assert cache.get("short") is None
        assert cache.get("long") == "b"

    def test_evicts_least_recently_used(self):
        cache = TTLCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # "b" is now the oldest

        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    @pytest.mark.asyncio
    async def test_get_or_refresh_loads_once_within_ttl(self):
        clock = FakeClock()
        cache = TTLCache(maxsize=1, clock=clock)
        loader = AsyncMock(side_effect=["first", "second"])

        assert await cache.get_or_refresh("bundle", 900, loader) == "first"
        clock.now += 899
        assert await cache.get_or_refresh("bundle", 900, loader) == "first"
        assert loader.await_count == 1

        clock.now += 1
        assert await cache.get_or_refresh("bundle", 900, loader) == "second"
        assert loader.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_fresh_value(self):
        cache = TTLCache(maxsize=1)
        loader = AsyncMock(side_effect=["first", "second"])

        await cache.get_or_refresh("bundle", 900, loader)
        result = await cache.get_or_refresh("bundle", 900, loader, force_refresh=True)

        assert result == "second"
        assert cache.get("bundle") == "second"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_nothing_and_propagates(self):
        cache = TTLCache(maxsize=1)
        loader = AsyncMock(side_effect=RuntimeError("build failed"))

        with pytest.raises(RuntimeError):
            await cache.get_or_refresh("bundle", 900, loader)

        assert cache.get("bundle") is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        cache = TTLCache(maxsize=1)
        calls = []

        async def loader():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "bundle"

        results = await asyncio.gather(
            *(cache.get_or_refresh("bundle", 900, loader) for _ in range(5))
        )

        assert results == ["bundle"] * 5
        assert len(calls) == 1
