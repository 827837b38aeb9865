"""Cache Backend Interface

Key/value store with per-entry TTL used by the idempotency cache.
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheBackend(ABC):
    """
    Abstract cache backend

    Implementations:
    - RedisCacheBackend: shared across instances, native TTL
    - LocalCacheBackend: per-process dict, lazy expiry plus periodic sweep
    - FallbackCacheBackend: Redis first, local when Redis is unreachable
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read a value

        Returns:
            Stored string, or None when missing or expired

        Raises:
            CacheUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Store a value that expires after ttl_seconds

        Raises:
            CacheUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """True if the backend is reachable"""
        pass

    async def close(self) -> None:
        """Release connections; backends without any keep the default"""
        pass


class CacheUnavailableError(Exception):
    """The cache backend could not be reached (connection failure or timeout)"""
    pass
