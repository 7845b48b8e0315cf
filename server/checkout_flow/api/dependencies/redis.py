from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from redis.asyncio import Redis

from checkout_flow.core.config import Settings
from checkout_flow.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def redis_client_for(settings: Settings) -> AsyncIterator[Optional[Redis]]:
    """Yield a redis client when one is configured, otherwise None."""
    if not settings.redis_url:
        yield None
        return

    client = Redis.from_url(settings.redis_url)
    try:
        await client.ping()
    except Exception as exc:  # pragma: no cover - redis optional
        logger.warning("redis.unavailable", error=str(exc))
        await client.aclose()
        yield None
        return

    try:
        yield client
    finally:
        await client.aclose()
