import json
import logging
from typing import Optional
from valet_quotes.core.redis import get_redis
from valet_quotes.core.config import settings

logger = logging.getLogger(__name__)


def _key(key: str) -> str:
    return f"idemp:history:{key}"


async def get_idempotent(key: str) -> Optional[dict]:
    if not key:
        return None
    redis = get_redis()
    if redis is None:
        return None
    v = await redis.get(_key(key))
    return json.loads(v) if v else None


async def set_idempotent(key: str, value: dict):
    redis = get_redis()
    if redis is None:
        logger.warning(f"Redis unavailable, idempotency key {key} not stored")
        return
    await redis.set(_key(key), json.dumps(value, default=str), ex=settings.IDEMPOTENCY_TTL)
