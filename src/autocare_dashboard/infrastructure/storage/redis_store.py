from __future__ import annotations

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from autocare_dashboard.application.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    """Implements application.ports.storage.KeyValueStore on Redis."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            raise StorageError(f"GET {key} failed: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except RedisError as exc:
            raise StorageError(f"SET {key} failed: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            raise StorageError(f"DEL {key} failed: {exc}") from exc

    async def keys(self, prefix: str) -> list[str]:
        try:
            return [key async for key in self._redis.scan_iter(match=f"{prefix}*")]
        except RedisError as exc:
            raise StorageError(f"SCAN {prefix}* failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._redis.aclose()
        logger.info("Redis connection pool closed")
