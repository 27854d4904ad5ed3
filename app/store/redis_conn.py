from redis import Redis
from redis.exceptions import RedisError
from app.settings import settings


def get_redis() -> Redis:
    return Redis.from_url(settings.REDIS_URL, decode_responses=True)


def redis_reachable() -> bool:
    try:
        return bool(get_redis().ping())
    except RedisError:
        return False
