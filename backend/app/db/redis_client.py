"""Shared redis-py connection pool for the live generation status."""

import logging

import redis

from app.config import settings

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None


def get_redis() -> redis.Redis:
    """Return a client bound to the process-wide pool, creating it lazily."""
    global _pool
    if _pool is None:
        logger.info("Creating Redis connection pool for %s", settings.REDIS_URL.split('@')[-1])
        _pool = redis.ConnectionPool.from_url(settings.REDIS_URL, decode_responses=True)
    return redis.Redis(connection_pool=_pool)


def close_redis() -> None:
    """Disconnect every pooled connection (worker shutdown)."""
    global _pool
    if _pool is not None:
        _pool.disconnect()
        _pool = None
        logger.info("Redis connection pool closed")
