import logging
import socket

import redis
import redis.asyncio

from db.config import settings

logger = logging.getLogger(__name__)

# Build socket keepalive options safely
socket_keepalive_options = {}
if hasattr(socket, "TCP_KEEPIDLE"):
    socket_keepalive_options[socket.TCP_KEEPIDLE] = 60
if hasattr(socket, "TCP_KEEPINTVL"):
    socket_keepalive_options[socket.TCP_KEEPINTVL] = 30
if hasattr(socket, "TCP_KEEPCNT"):
    socket_keepalive_options[socket.TCP_KEEPCNT] = 3

pool_settings = {
    "max_connections": settings.redis_max_connections,  # Maximum number of connections per pod
    "socket_timeout": 10.0,
    "socket_connect_timeout": 5.0,
    "socket_keepalive": True,  # Keep connections alive
    "health_check_interval": 30,  # Health check every 30 seconds
    "retry_on_timeout": True,
    "retry_on_error": [
        redis.exceptions.ConnectionError,
        redis.exceptions.TimeoutError,
        redis.exceptions.BusyLoadingError,
    ],
    "decode_responses": True,  # Pack entries are stored as JSON text
}

# Only add socket_keepalive_options if we have any options available
if socket_keepalive_options:
    pool_settings["socket_keepalive_options"] = socket_keepalive_options


def create_async_redis_client(redis_url: str = settings.redis_url) -> redis.asyncio.Redis:
    """Create an async client with connection pooling. No connection is opened yet."""
    return redis.asyncio.Redis(
        connection_pool=redis.asyncio.ConnectionPool.from_url(redis_url, **pool_settings)
    )


async def redis_health_check(client: redis.asyncio.Redis) -> dict:
    try:
        await client.ping()
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as error:
        logger.warning(f"Redis health check failed: {error}")
        return {"status": "unhealthy", "error": str(error)}
    return {"status": "healthy"}


REDIS_ASYNC_CLIENT = create_async_redis_client()
