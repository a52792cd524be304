from redis.asyncio import Redis

from .config import settings


class RedisManager:
    """Client for the Redis instance backing Celery results"""

    _instance = None

    @classmethod
    def get_client(cls) -> Redis:
        if cls._instance is None:
            cls._instance = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls._instance

    @classmethod
    async def close(cls):
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None


async def check_connection() -> bool:
    try:
        await RedisManager.get_client().ping()
        return True
    except Exception:
        return False
