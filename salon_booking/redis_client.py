from redis import Redis

from .config import settings

# None when no Redis is configured: month counts are then computed uncached
redis_client: Redis | None = (
    Redis.from_url(settings.redis_url, decode_responses=True, socket_timeout=2.0)
    if settings.redis_url
    else None
)
