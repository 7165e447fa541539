"""Redis connection and the JSON cache used for doctor schedules."""

import json
from typing import Any, cast

import redis
import structlog

from medix.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Shared Redis client, created on first use."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password or None,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_timeout=2,
            health_check_interval=30,
        )
    return _redis_client


async def check_redis_connection() -> bool:
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError:
        return False


def close_redis_connection() -> None:
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    JSON values in Redis with an optional TTL.

    Schedules are always readable from the database, so every operation here
    fails open: an unreachable Redis reads as a miss and writes report False.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """Cached value for ``key``, or None on a miss or a Redis error."""
        try:
            raw = cast(str | None, self.redis.get(key))
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            self.delete(key)
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` under ``key``; ``ttl`` is in seconds."""
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(key, ttl, payload)
            else:
                self.redis.set(key, payload)
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False
        return True
