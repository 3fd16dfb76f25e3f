from functools import lru_cache

import redis

from travelcrm.core.config import settings


@lru_cache
def get_redis_client() -> redis.Redis:
    # raw bytes: the stream transport decodes entry by entry
    return redis.Redis.from_url(settings.REDIS_URL)


def get_redis() -> redis.Redis:
    return get_redis_client()
