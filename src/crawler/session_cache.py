"""
Session cache.

Keeps validated sessions keyed by account so repeated runs skip the login
round-trips. Two backends: process memory and Redis.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from loguru import logger
from pydantic import ValidationError
from redis.exceptions import RedisError

from src.connections.redis import RedisConnection, get_redis
from src.crawler.types import Session

cache_log = logger.bind(module="SessionCache")

KEY_PREFIX = "dwv_session_"


def session_key(email: str) -> str:
    """
    Cache key for an account. The password never takes part.

    Examples:
        >>> session_key(" User@Example.com ")
        'dwv_session_user@example.com'
    """
    return f"{KEY_PREFIX}{email.strip().lower()}"


def _cap_expiry(session: Session, ttl_seconds: int) -> Session:
    """Shorten the session's expiry to the cache TTL when it is later."""
    ttl_expiry = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    if session.expires_at <= ttl_expiry:
        return session
    return session.model_copy(update={"expires_at": ttl_expiry})


class SessionCache(ABC):
    """Key/value store of sessions with per-entry expiry."""

    @abstractmethod
    async def get(self, key: str) -> Session | None:
        """Return the live session for key, or None."""

    @abstractmethod
    async def put(self, key: str, session: Session, ttl_seconds: int) -> None:
        """Store a session for at most ttl_seconds."""

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Forget the session for key."""


class MemorySessionCache(SessionCache):
    """In-process cache. Expired entries are evicted lazily on read."""

    def __init__(self):
        self._entries: dict[str, Session] = {}

    async def get(self, key: str) -> Session | None:
        session = self._entries.get(key)
        if session is None:
            return None
        if session.is_expired():
            del self._entries[key]
            cache_log.debug(f"Evicted expired session {session.identifier}")
            return None
        return session

    async def put(self, key: str, session: Session, ttl_seconds: int) -> None:
        self._entries[key] = _cap_expiry(session, ttl_seconds)

    async def clear(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisSessionCache(SessionCache):
    """
    Redis-backed cache shared between processes.

    Redis errors are logged and treated as a cold cache.
    """

    def __init__(self, redis: RedisConnection | None = None):
        """
        Initialize the cache.

        Args:
            redis: Redis connection (the shared singleton is used if not provided)
        """
        self._redis = redis

    async def _client(self) -> RedisConnection:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def get(self, key: str) -> Session | None:
        try:
            redis = await self._client()
            data = await redis.get_json(key)
        except (RedisError, OSError) as e:
            cache_log.warning(f"Session cache read failed: {e}")
            return None

        if data is None:
            return None

        try:
            session = Session.model_validate(data)
        except ValidationError:
            cache_log.warning(f"Discarding malformed cached session at {key}")
            await self.clear(key)
            return None

        if session.is_expired():
            await self.clear(key)
            return None
        return session

    async def put(self, key: str, session: Session, ttl_seconds: int) -> None:
        session = _cap_expiry(session, ttl_seconds)
        try:
            redis = await self._client()
            await redis.set_json(key, session.model_dump(mode="json"), ttl_seconds)
        except (RedisError, OSError) as e:
            cache_log.warning(f"Session cache write failed: {e}")

    async def clear(self, key: str) -> None:
        try:
            redis = await self._client()
            await redis.delete(key)
        except (RedisError, OSError) as e:
            cache_log.warning(f"Session cache delete failed: {e}")


def create_session_cache(backend: str) -> SessionCache:
    """Build the configured cache backend ("memory" or "redis")."""
    if backend == "redis":
        return RedisSessionCache()
    return MemorySessionCache()
