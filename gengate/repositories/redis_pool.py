"""
Redis connection pool.

Shared by the cache, counter and job repositories when the Redis storage
backend is selected.
"""

from redis.asyncio import ConnectionPool

from gengate.config import config


async def create_redis_pool() -> ConnectionPool:
    """
    Create Redis connection pool.

    Returns:
        Redis connection pool
    """
    return ConnectionPool.from_url(
        config.redis_url,
        max_connections=config.redis_max_connections,
        decode_responses=True,
    )

