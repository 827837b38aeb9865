"""Idempotency Cache

Stores the result of a logical client operation under its idempotency
token, so a retried submission replays the first result instead of
re-executing side effects.
"""

import json
import logging
from typing import Any, Dict, Optional
from src.app.services.cache_backend import CacheBackend, CacheUnavailableError

logger = logging.getLogger(__name__)


class IdempotencyCache:
    """
    Result cache keyed by caller-supplied idempotency tokens

    - set() is fire-and-forget: failures are logged, never raised
    - get() returns None on a miss, an expired entry or a corrupted entry
    """

    CACHE_PREFIX = "idempotency:"
    DEFAULT_TTL_SECONDS = 600  # 10 minutes

    def __init__(self, backend: CacheBackend, ttl_seconds: Optional[int] = None):
        self.backend = backend
        self.ttl_seconds = int(ttl_seconds or self.DEFAULT_TTL_SECONDS)

    def _key(self, key: str) -> str:
        return self.CACHE_PREFIX + key

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        cache_key = self._key(key)
        try:
            cached = await self.backend.get(cache_key)
        except CacheUnavailableError as e:
            logger.warning(f"Idempotency cache read failed for {key}: {e}")
            return None

        if cached is None:
            return None

        try:
            return json.loads(cached)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse cached idempotency result for {key}: {e}")
            await self.delete(key)
            return None

    async def set(self, key: str, result: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        ttl = int(ttl_seconds or self.ttl_seconds)
        try:
            await self.backend.set(self._key(key), json.dumps(result, default=str), ttl)
        except CacheUnavailableError as e:
            logger.warning(f"Idempotency cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(self._key(key))
        except CacheUnavailableError as e:
            logger.warning(f"Idempotency cache delete failed for {key}: {e}")

    async def close(self) -> None:
        await self.backend.close()
