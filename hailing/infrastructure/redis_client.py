"""
Redis async connection pool.

Shared by the status notifier (pub/sub) and the refund reconciler's
distributed lock.  Nothing on the booking path depends on Redis being up.
"""

import redis.asyncio as aioredis

from hailing.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_socket_timeout_seconds,
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    await _pool.disconnect()
