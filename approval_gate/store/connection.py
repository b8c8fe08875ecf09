"""
Redis connection management.
Handles the shared async Redis client used by every approval component.
"""

import logging

from redis.asyncio import Redis

from approval_gate.config import get_settings

logger = logging.getLogger(__name__)

# Global client instance
_redis: Redis | None = None


def get_redis() -> Redis:
    """
    Get or create the async Redis client.

    Returns:
        Redis: The shared client, decoding responses to str.
    """
    global _redis
    if _redis is None:
        settings = get_settings()
        _redis = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def init_store() -> Redis:
    """
    Initialize the Redis connection.
    Should be called on process startup.

    Returns:
        Redis: The shared client.
    """
    redis = get_redis()
    await redis.ping()
    logger.info("Redis connection initialized")
    return redis


async def close_store() -> None:
    """
    Close the Redis connection.
    Should be called on process shutdown.
    """
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis connection closed")
