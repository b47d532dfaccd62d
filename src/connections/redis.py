"""
Redis Connection Module.

Manages the Redis connection used as the shared session cache.
"""

import json
from typing import Any, Optional

import redis.asyncio as redis
from loguru import logger

from config.settings import get_settings

redis_log = logger.bind(module="Redis")


class RedisConnection:
    """Redis connection manager."""

    def __init__(self):
        """Initialize Redis connection."""
        self.settings = get_settings().redis
        self._client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        redis_log.info(f"Connecting to Redis at {self.settings.host}:{self.settings.port}")
        self._client = redis.Redis(
            host=self.settings.host,
            port=self.settings.port,
            db=self.settings.db,
            password=self.settings.password or None,
            decode_responses=True,
        )
        # Test connection
        await self._client.ping()
        redis_log.info("Redis connected successfully")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            redis_log.info("Redis connection closed")

    @property
    def client(self) -> redis.Redis:
        """Get Redis client."""
        if not self._client:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    # ========== JSON Values ==========

    async def get_json(self, key: str) -> Any | None:
        """
        Read a JSON value.

        Args:
            key: Redis key

        Returns:
            Decoded value, or None if missing or not valid JSON
        """
        raw = await self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            redis_log.warning(f"Discarding non-JSON value at {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """
        Write a JSON value with expiry.

        Args:
            key: Redis key
            value: JSON-serializable value
            ttl_seconds: Expiry in seconds
        """
        await self.client.set(key, json.dumps(value, ensure_ascii=False), ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self.client.delete(key)


# Singleton instance
_redis: Optional[RedisConnection] = None


async def get_redis() -> RedisConnection:
    """Get Redis connection singleton."""
    global _redis
    if _redis is None:
        _redis = RedisConnection()
        await _redis.connect()
    return _redis


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.close()
        _redis = None
