import logging
from typing import Optional
from redis.asyncio import Redis
from valet_quotes.core.config import settings

logger = logging.getLogger(__name__)

redis: Optional[Redis] = None

async def init_redis() -> Redis:
    global redis
    try:
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        await redis.ping()
        logger.info("Connected to Redis")
        return redis
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        redis = None
        raise

async def close_redis():
    global redis
    if redis:
        await redis.aclose()
        redis = None

def set_redis(client: Optional[Redis]):
    global redis
    redis = client

def get_redis() -> Optional[Redis]:
    """Return the shared client, or None when Redis is not connected."""
    return redis
