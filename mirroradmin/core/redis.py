"""
Redis connection management.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
import structlog

from mirroradmin.core.config import Settings

logger = structlog.get_logger(__name__)


def create_redis(settings: Settings) -> redis.Redis:
    """Create a Redis client for the configured metadata store."""
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )


@asynccontextmanager
async def open_redis(settings: Settings) -> AsyncIterator[redis.Redis]:
    """Open a Redis connection for the duration of one command."""
    client = create_redis(settings)
    logger.debug("Redis client created", host=settings.REDIS_HOST, port=settings.REDIS_PORT)
    try:
        yield client
    finally:
        await client.aclose()
        logger.debug("Redis connection closed")
