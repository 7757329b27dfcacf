"""
Redis cache-aside store for computed metrics.

Cache failures never fail the caller: an unreachable or erroring Redis is
treated as a cache miss and the value is recomputed.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import redis.asyncio as redis

from infrastructure.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetricsCache:
    """
    Get-or-compute cache over Redis ``GET``/``SETEX``.

    Values are stored as JSON under a caller-supplied key and expire
    passively after their TTL.
    """

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        self.redis: Optional[redis.Redis] = client
        self.url = url or settings.redis_url
        self._connected = client is not None

    async def connect(self):
        """
        Connect to Redis.

        A failed connection is logged and leaves the cache disconnected;
        every lookup is then a miss.
        """
        try:
            self.redis = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )

            # Test connection
            await self.redis.ping()
            self._connected = True
            logger.info("Redis connection established for metrics cache")

        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Metrics will not be cached.")
            self.redis = None
            self._connected = False

    async def disconnect(self):
        """Disconnect from Redis."""
        if self.redis:
            await self.redis.aclose()
            self._connected = False
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._connected and self.redis is not None

    async def load(self, key: str) -> Optional[Any]:
        """Return the decoded JSON value under *key*, or None on miss or error."""
        if not self.is_connected:
            return None

        try:
            raw = await self.redis.get(key)
            return json.loads(raw) if raw is not None else None
        except Exception as e:
            logger.warning(f"Metrics cache read failed for {key}: {e}")
            return None

    async def store(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """
        Store *value* as JSON under *key* with a TTL.

        Returns:
            True if stored, False if the cache is unavailable
        """
        if not self.is_connected:
            return False

        try:
            await self.redis.setex(key, ttl_seconds, json.dumps(value))
            return True
        except Exception as e:
            logger.warning(f"Metrics cache write failed for {key}: {e}")
            return False

    async def get_or_fetch(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: int,
        *,
        loads: Callable[[Any], T],
        dumps: Callable[[T], Any],
    ) -> tuple[T, bool]:
        """
        Return the cached value for *key*, computing and storing it on a miss.

        Args:
            key: Cache key
            compute: Coroutine function producing a fresh value
            ttl_seconds: Lifetime of a stored value
            loads: Rebuilds a value from its JSON-compatible form
            dumps: Converts a value into a JSON-compatible form

        Returns:
            (value, cached) where cached is True when served from Redis
        """
        cached = await self.load(key)
        if cached is not None:
            try:
                return loads(cached), True
            except Exception as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        value = await compute()
        await self.store(key, dumps(value), ttl_seconds)
        return value, False


# Singleton instance
metrics_cache = MetricsCache()
