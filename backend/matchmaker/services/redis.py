"""
Redis Service Module

Async Redis wrapper for the short-lived shared state of the API: login
sessions, rate-limit counters and the scheduler's enable flag and last-run
status. Values are stored as JSON.

Every method logs and swallows Redis errors, returning None/False so callers
can decide whether a missing store is fatal (sessions) or not (rate limiting).
"""

from redis import asyncio as aioredis
from typing import Optional, Any
import json
from datetime import timedelta, datetime
from ..utils.config import settings
from ..utils.logger import redis_service_logger as logger


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


class RedisService:
    """JSON get/set/delete plus counters over one redis.asyncio client."""

    def __init__(self, client=None):
        self.redis = client or aioredis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value, or None when missing or Redis is down."""
        try:
            raw = await self.redis.get(key)
        except Exception as e:
            logger.error(f"Redis get error for {key}: {str(e)}")
            return None
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, expire: int = 3600) -> bool:
        """
        Store value as JSON with a TTL.

        Args:
            key: Redis key
            value: JSON-serializable value; datetimes become ISO strings
            expire: TTL in seconds

        Returns:
            True if stored
        """
        try:
            await self.redis.setex(key, timedelta(seconds=expire), json.dumps(value, default=_json_default))
            return True
        except Exception as e:
            logger.error(f"Redis set error for {key}: {str(e)}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self.redis.delete(key)
            return True
        except Exception as e:
            logger.error(f"Redis delete error for {key}: {str(e)}")
            return False

    async def increment(self, key: str, expire: int = 60) -> Optional[int]:
        """
        Increment a counter, starting its expiry window on first use.

        Returns:
            New counter value, or None if Redis is unavailable
        """
        try:
            value = await self.redis.incr(key)
            if value == 1:
                await self.redis.expire(key, expire)
            return value
        except Exception as e:
            logger.error(f"Redis increment error for {key}: {str(e)}")
            return None

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis ping error: {str(e)}")
            return False

    async def close(self) -> None:
        try:
            await self.redis.aclose()
        except Exception as e:
            logger.error(f"Redis close error: {str(e)}")


redis_service = RedisService()
