# swim_makeup/db/redis.py
from typing import Optional

import redis
from swim_makeup.core.config import settings

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Returns the shared Redis client, or None when REDIS_URL is not configured.
    The client is created lazily so importing this module never opens a socket.
    """
    global _redis_client
    if not settings.REDIS_URL:
        return None
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client
