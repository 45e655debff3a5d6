from redis import Redis

from .config import settings

# Connects lazily; an unreachable server surfaces as RedisError on first use.
redis_client = Redis.from_url(
    settings.redis_url,
    socket_timeout=settings.redis_socket_timeout,
    socket_connect_timeout=settings.redis_socket_timeout,
    decode_responses=True,
)
