"""Redis client configuration and cache helpers."""

import json
from typing import Any, cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Get or lazily create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """Check if Redis connection is healthy."""
    try:
        get_redis_client().ping()
        return True
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    Redis-backed cache.

    Every operation degrades to a miss (or a False result) when Redis is
    unreachable, so callers fall through to the database.
    """

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set a raw string value, optionally with a TTL in seconds."""
        try:
            if ttl:
                self.redis.setex(key, ttl, value)
            else:
                self.redis.set(key, value)
            return True
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        try:
            self.redis.delete(key)
            return True
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False

    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        try:
            return bool(self.redis.exists(key))
        except Exception:
            return False

    def get_json(self, key: str) -> Any | None:
        """
        Get JSON value from cache and deserialize.

        Args:
            key: Cache key

        Returns:
            Deserialized object or None on miss or error
        """
        try:
            value = cast(str | None, self.redis.get(key))
            if value:
                return json.loads(value)
            return None
        except Exception:
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Serialize and store a JSON value."""
        try:
            return self.set(key, json.dumps(value, default=str), ttl=ttl)
        except (TypeError, ValueError):
            return False
