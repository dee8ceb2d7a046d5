"""Async Redis connection factory.

Returns an async redis.Redis client, or None if Redis is not configured or
unreachable at startup. Callers fall back to the in-memory code store.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import RedisSettings
from shared.logging import get_logger

log = get_logger(__name__)


async def create_redis_client(settings: RedisSettings) -> Optional[aioredis.Redis]:
    """Connect to Redis and return a client, or None when unavailable."""
    if not settings.redis_uri:
        log.info("redis_not_configured", fallback="in_memory")
        return None
    try:
        client: aioredis.Redis = aioredis.from_url(
            settings.redis_uri, decode_responses=True
        )
        await client.ping()
        log.info("redis_connected", uri=settings.redis_uri.split("@")[-1])  # mask credentials
        return client
    except (RedisError, OSError) as e:
        log.warning(
            "redis_connection_failed",
            error=str(e),
            error_type=type(e).__name__,
            fallback="in_memory",
        )
        return None
