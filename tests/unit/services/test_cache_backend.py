"""Unit tests for cache backends

Tests cover:
- LocalCacheBackend TTL expiry and sweep
- RedisCacheBackend maps connection failures to CacheUnavailableError
- FallbackCacheBackend degraded mode and recovery probing
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import ConnectionError as RedisConnectionError

from src.adapter.services.cache_backend import (
    FallbackCacheBackend,
    LocalCacheBackend,
    RedisCacheBackend,
    create_cache_backend,
)
from src.app.services.cache_backend import CacheUnavailableError


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def failing_redis_client():
    client = MagicMock()
    client.get = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.set = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.delete = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    client.ping = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    return client


@pytest.mark.asyncio
class TestLocalCacheBackend:
    async def test_set_then_get(self, clock):
        cache = LocalCacheBackend(clock=clock)

        await cache.set("k", "v", ttl_seconds=60)

        assert await cache.get("k") == "v"

    async def test_entry_expires_after_ttl(self, clock):
        cache = LocalCacheBackend(clock=clock)
        await cache.set("k", "v", ttl_seconds=60)

        clock.advance(60)

        assert await cache.get("k") is None
        assert len(cache) == 0

    async def test_sweep_removes_only_expired_entries(self, clock):
        cache = LocalCacheBackend(sweep_interval_seconds=3600, clock=clock)
        await cache.set("short", "1", ttl_seconds=10)
        await cache.set("long", "2", ttl_seconds=600)

        clock.advance(30)
        removed = cache.sweep()

        assert removed == 1
        assert len(cache) == 1
        assert await cache.get("long") == "2"

    async def test_periodic_sweep_runs_on_normal_calls(self, clock):
        cache = LocalCacheBackend(sweep_interval_seconds=60, clock=clock)
        await cache.set("a", "1", ttl_seconds=5)

        clock.advance(61)
        await cache.set("b", "2", ttl_seconds=600)

        assert len(cache) == 1

    async def test_delete(self, clock):
        cache = LocalCacheBackend(clock=clock)
        await cache.set("k", "v", ttl_seconds=60)

        await cache.delete("k")
        await cache.delete("missing")

        assert await cache.get("k") is None


@pytest.mark.asyncio
class TestRedisCacheBackend:
    async def test_connection_error_becomes_unavailable(self, failing_redis_client):
        backend = RedisCacheBackend(client=failing_redis_client)

        with pytest.raises(CacheUnavailableError):
            await backend.get("k")

    async def test_ping_reports_false_when_down(self, failing_redis_client):
        backend = RedisCacheBackend(client=failing_redis_client)

        assert await backend.ping() is False

    async def test_set_passes_ttl(self):
        client = MagicMock()
        client.set = AsyncMock(return_value=True)
        backend = RedisCacheBackend(client=client)

        await backend.set("k", "v", 600)

        client.set.assert_awaited_once_with("k", "v", ex=600)

    async def test_close_releases_client_connections(self):
        client = MagicMock()
        client.aclose = AsyncMock()

        await RedisCacheBackend(client=client).close()

        client.aclose.assert_awaited_once()


@pytest.mark.asyncio
class TestFallbackCacheBackend:
    async def test_healthy_primary_is_used(self, clock):
        primary = LocalCacheBackend(clock=clock)
        fallback = LocalCacheBackend(clock=clock)
        cache = FallbackCacheBackend(primary, fallback, clock=clock)

        await cache.set("k", "v", 60)

        assert await primary.get("k") == "v"
        assert await fallback.get("k") is None
        assert cache.degraded is False

    async def test_primary_failure_degrades_to_local(self, failing_redis_client, clock):
        fallback = LocalCacheBackend(clock=clock)
        cache = FallbackCacheBackend(
            RedisCacheBackend(client=failing_redis_client), fallback, clock=clock
        )

        await cache.set("k", "v", 60)

        assert cache.degraded is True
        assert await cache.get("k") == "v"

    async def test_degraded_mode_skips_primary_until_recheck_interval(self, failing_redis_client, clock):
        cache = FallbackCacheBackend(
            RedisCacheBackend(client=failing_redis_client),
            LocalCacheBackend(clock=clock),
            recovery_probe_seconds=30,
            clock=clock,
        )
        await cache.get("k")
        calls_after_failure = failing_redis_client.get.await_count

        clock.advance(10)
        await cache.get("k")

        assert failing_redis_client.get.await_count == calls_after_failure
        failing_redis_client.ping.assert_not_awaited()

    async def test_recovers_when_recheck_succeeds(self, clock):
        primary = MagicMock()
        primary.get = AsyncMock(side_effect=[CacheUnavailableError("down"), "from-redis"])
        primary.ping = AsyncMock(return_value=True)
        cache = FallbackCacheBackend(
            primary, LocalCacheBackend(clock=clock), recovery_probe_seconds=30, clock=clock
        )
        await cache.get("k")
        assert cache.degraded is True

        clock.advance(31)
        value = await cache.get("k")

        assert cache.degraded is False
        assert value == "from-redis"

    async def test_primary_miss_falls_through_to_local(self, clock):
        primary = LocalCacheBackend(clock=clock)
        fallback = LocalCacheBackend(clock=clock)
        await fallback.set("k", "written-while-degraded", 60)
        cache = FallbackCacheBackend(primary, fallback, clock=clock)

        assert await cache.get("k") == "written-while-degraded"

    async def test_delete_removes_from_both(self, clock):
        primary = LocalCacheBackend(clock=clock)
        fallback = LocalCacheBackend(clock=clock)
        await primary.set("k", "a", 60)
        await fallback.set("k", "b", 60)
        cache = FallbackCacheBackend(primary, fallback, clock=clock)

        await cache.delete("k")

        assert await cache.get("k") is None

    async def test_close_closes_primary(self, clock):
        primary = MagicMock()
        primary.close = AsyncMock()
        cache = FallbackCacheBackend(primary, LocalCacheBackend(clock=clock), clock=clock)

        await cache.close()

        primary.close.assert_awaited_once()


class TestCreateCacheBackend:
    def make_config(self, backend):
        config = MagicMock()
        config.CACHE_BACKEND = backend
        config.REDIS_URL = "redis://localhost:6379/0"
        config.CACHE_OPERATION_TIMEOUT_SECONDS = 0.5
        config.CACHE_RECOVERY_PROBE_SECONDS = 30
        config.LOCAL_CACHE_SWEEP_INTERVAL_SECONDS = 60
        return config

    def test_memory_backend(self):
        assert isinstance(create_cache_backend(self.make_config("memory")), LocalCacheBackend)

    def test_redis_backend_has_local_fallback(self):
        backend = create_cache_backend(self.make_config("redis"))

        assert isinstance(backend, FallbackCacheBackend)
        assert isinstance(backend.primary, RedisCacheBackend)
        assert isinstance(backend.fallback, LocalCacheBackend)
