import redis.asyncio as redis
from redis.exceptions import RedisError
from johari.core.config import settings
from loguru import logger

# Only carries change notifications between workers; documents live in the store.
_redis_client: redis.Redis = None


def build_redis_client() -> redis.Redis:
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        decode_responses=True,
        socket_timeout=settings.STORE_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
    )


async def get_redis_client() -> redis.Redis:
    if _redis_client is None:
        raise ConnectionError("Redis client not initialized")
    return _redis_client


async def init_redis_client() -> bool:
    """
    Connects the change feed client. Returns False when Redis cannot be reached,
    in which case the document store falls back to an in-process feed.
    """
    global _redis_client
    client = build_redis_client()
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT} unreachable, change feed stays local: {e}")
        await client.aclose()
        return False
    _redis_client = client
    logger.info(f"Redis change feed connected at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    return True


async def close_redis_client():
    global _redis_client
    if _redis_client is None:
        return
    client, _redis_client = _redis_client, None
    await client.aclose()
    logger.info("Redis change feed connection closed")
