"""Short-lived key/value snapshots stored in Redis."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class SnapshotCache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: int) -> bool: ...

    async def delete(self, key: str) -> bool: ...


class RedisSnapshotCache:
    """Redis cache wrapper with JSON serialization.

    Every failure is logged and reported as a miss so callers fall back to the live data.
    """

    def __init__(self, client: aioredis.Redis, prefix: str = "telecare") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "telecare") -> "RedisSnapshotCache":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._client.get(self._key(key))
        except RedisError as exc:
            logger.error("Cache get error for %s: %s", key, exc)
            return None
        if value is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            decoded = json.loads(value)
        except ValueError as exc:
            logger.warning("Cache value for %s is not valid JSON, dropping it: %s", key, exc)
            await self.delete(key)
            return None
        logger.debug("Cache HIT: %s", key)
        return decoded

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            await self._client.set(self._key(key), json.dumps(value), ex=ttl)
        except RedisError as exc:
            logger.error("Cache set error for %s: %s", key, exc)
            return False
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            logger.error("Cache delete error for %s: %s", key, exc)
            return False
        return True

    async def close(self) -> None:
        await self._client.aclose()

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"
