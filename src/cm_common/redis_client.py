"""Shared Redis pool for the notification channel.

``NotificationDispatcher`` publishes post-commit events (order placed,
escrow released, wallet settled) on ``NOTIFICATION_CHANNEL``. Nothing money
related is stored here; a Redis outage only drops notifications.
"""

import redis.asyncio as aioredis

from config.settings import settings

_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Return the process-wide client, creating it on first use."""
    global _pool  # noqa: PLW0603
    if _pool is None:
        _pool = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _pool


async def close_redis() -> None:
    """Release the pool at shutdown (called from the app lifespan)."""
    global _pool  # noqa: PLW0603
    if _pool is None:
        return
    await _pool.aclose()
    _pool = None
