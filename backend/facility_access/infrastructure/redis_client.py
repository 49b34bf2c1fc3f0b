"""
Shared async Redis connection for the catalog cache and event publishing.

Redis is advisory here: every caller treats `None` (disabled or unreachable)
as "carry on without it". Admission decisions never depend on Redis.
"""

import time
from typing import Optional

import redis.asyncio as redis

from facility_access.core.config import get_settings
from facility_access.core.logging import get_logger

logger = get_logger(__name__)

# Don't hammer an unreachable server on every scan
RECONNECT_COOLDOWN_SECONDS = 30.0


class RedisClient:
    """Lazily connected singleton with a reconnect cooldown."""

    _instance: Optional[redis.Redis] = None
    _last_failure: float = 0.0

    @classmethod
    async def get_client(cls) -> Optional[redis.Redis]:
        settings = get_settings()
        if not settings.REDIS_ENABLED:
            return None

        if cls._instance is not None:
            return cls._instance

        if time.monotonic() - cls._last_failure < RECONNECT_COOLDOWN_SECONDS:
            return None

        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except Exception as e:
            cls._last_failure = time.monotonic()
            logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
            await client.aclose()
            return None

        logger.info("redis_connected", url=settings.REDIS_URL)
        cls._instance = client
        return client

    @classmethod
    def mark_failed(cls, error: Exception) -> None:
        """Drop a client whose calls fail and start the reconnect cooldown."""
        if cls._instance is not None:
            logger.error("redis_call_failed", error=str(error) or type(error).__name__)
        # The stale pool is not closed here; closing may block on the same dead socket
        cls._instance = None
        cls._last_failure = time.monotonic()

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None
        cls._last_failure = 0.0


async def get_redis() -> Optional[redis.Redis]:
    """Get the Redis client, or None when Redis is disabled or down."""
    return await RedisClient.get_client()


async def close_redis() -> None:
    await RedisClient.close()


def mark_redis_unavailable(error: Exception) -> None:
    RedisClient.mark_failed(error)
