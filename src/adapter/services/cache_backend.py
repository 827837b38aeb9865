"""Cache Backend Implementations

Redis for shared storage, an in-process dict for local runs and for
degraded operation, and a fallback composition that switches between them.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple
import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from src.app.services.cache_backend import CacheBackend, CacheUnavailableError

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (
    RedisConnectionError,
    RedisTimeoutError,
    asyncio.TimeoutError,
    OSError,
)


class RedisCacheBackend(CacheBackend):
    """
    Redis-backed cache

    Every command is bounded by operation_timeout so a hung Redis degrades
    into CacheUnavailableError instead of stalling the request.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        operation_timeout: float = 0.5,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis backend

        Args:
            redis_url: Redis connection URL (ignored when client is given)
            operation_timeout: Seconds allowed per command
            client: Pre-built redis.asyncio client
        """
        self.operation_timeout = operation_timeout
        self.client = client or aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=operation_timeout,
            socket_timeout=operation_timeout,
        )

    async def _call(self, operation: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.operation_timeout)
        except _UNAVAILABLE_ERRORS as e:
            raise CacheUnavailableError(f"Redis {operation} failed: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        return await self._call("GET", self.client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._call("SET", self.client.set(key, value, ex=int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        await self._call("DEL", self.client.delete(key))

    async def ping(self) -> bool:
        try:
            return bool(await self._call("PING", self.client.ping()))
        except CacheUnavailableError:
            return False

    async def close(self) -> None:
        await self.client.aclose()


class LocalCacheBackend(CacheBackend):
    """
    Per-process cache with TTL

    Entries expire lazily on read; a sweep removing every expired entry runs
    at most once per sweep_interval_seconds, piggybacking on normal calls.
    """

    def __init__(
        self,
        sweep_interval_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _maybe_sweep(self, now: float):
        if now - self._last_sweep >= self.sweep_interval_seconds:
            self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Local cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def sweep(self) -> int:
        """Remove every expired entry, returning how many were removed"""
        with self._lock:
            return self._sweep_locked(self._clock())

    async def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            self._entries[key] = (value, now + ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True


class FallbackCacheBackend(CacheBackend):
    """
    Primary cache with a local fallback

    - Connection failures and timeouts on the primary switch this process to
      degraded mode (logged once); a plain miss never does
    - While degraded, calls go to the local backend and the primary is
      re-probed every recovery_probe_seconds
    - A primary miss also checks the local backend, so values written while
      degraded stay readable on this instance after recovery
    """

    def __init__(
        self,
        primary: CacheBackend,
        fallback: Optional[LocalCacheBackend] = None,
        recovery_probe_seconds: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.primary = primary
        self.fallback = fallback or LocalCacheBackend()
        self.recovery_probe_seconds = recovery_probe_seconds
        self._clock = clock
        self._degraded_since: Optional[float] = None
        self._last_probe = 0.0

    @property
    def degraded(self) -> bool:
        return self._degraded_since is not None

    def _degrade(self, error: Exception):
        if self._degraded_since is None:
            logger.warning(f"Cache primary unavailable, using local fallback: {error}")
            self._degraded_since = self._clock()
        self._last_probe = self._clock()

    async def _primary_usable(self) -> bool:
        if self._degraded_since is None:
            return True
        now = self._clock()
        if now - self._last_probe < self.recovery_probe_seconds:
            return False
        self._last_probe = now
        if await self.primary.ping():
            logger.info(
                f"Cache primary recovered after {now - self._degraded_since:.0f}s in degraded mode"
            )
            self._degraded_since = None
            return True
        return False

    async def get(self, key: str) -> Optional[str]:
        if await self._primary_usable():
            try:
                value = await self.primary.get(key)
                if value is not None:
                    return value
            except CacheUnavailableError as e:
                self._degrade(e)
        return await self.fallback.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if await self._primary_usable():
            try:
                await self.primary.set(key, value, ttl_seconds)
                return
            except CacheUnavailableError as e:
                self._degrade(e)
        await self.fallback.set(key, value, ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.fallback.delete(key)
        if await self._primary_usable():
            try:
                await self.primary.delete(key)
            except CacheUnavailableError as e:
                self._degrade(e)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        await self.primary.close()


def create_cache_backend(config) -> CacheBackend:
    """
    Factory function to create the configured cache backend

    Args:
        config: ApplicationConfig-like object

    Returns:
        FallbackCacheBackend over Redis when CACHE_BACKEND == "redis",
        otherwise a LocalCacheBackend
    """
    local = LocalCacheBackend(sweep_interval_seconds=config.LOCAL_CACHE_SWEEP_INTERVAL_SECONDS)

    if str(config.CACHE_BACKEND).lower() != "redis":
        logger.info("Using in-process idempotency cache")
        return local

    primary = RedisCacheBackend(
        redis_url=config.REDIS_URL,
        operation_timeout=config.CACHE_OPERATION_TIMEOUT_SECONDS,
    )
    return FallbackCacheBackend(
        primary=primary,
        fallback=local,
        recovery_probe_seconds=config.CACHE_RECOVERY_PROBE_SECONDS,
    )
