"""Redis-backed cache used when REDIS_URL is configured."""
import logging
from typing import Dict, List, Optional, Set

from redis import asyncio as aioredis

from feedrec.core.cache import CacheInterface

logger = logging.getLogger(__name__)


class RedisCache(CacheInterface):
    """Thin adapter over redis.asyncio with string responses."""

    def __init__(self, url: str, max_connections: int = 50) -> None:
        self._client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            max_connections=max_connections,
            socket_keepalive=True,
            socket_connect_timeout=5,
            health_check_interval=30,
        )
        logger.info(f"Redis cache configured: {url.split('@')[-1]}")

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self._client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> bool:
        return bool(await self._client.delete(key))

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._client.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._client.srem(key, *members)

    async def sismember(self, key: str, member: str) -> bool:
        return bool(await self._client.sismember(key, member))

    async def smembers(self, key: str) -> Set[str]:
        return set(await self._client.smembers(key))

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        if not mapping:
            return 0
        return await self._client.zadd(key, mapping)

    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        return list(await self._client.zrevrange(key, start, stop))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self._client.expire(key, ttl_seconds))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
