from loguru import logger
from johari.core.config import settings
from johari.core import database
from johari.core.redis_client import get_redis_client
from johari.services.change_feed import ChangeFeed, LocalChangeFeed, RedisChangeFeed
from johari.services.document_store import DocumentStore, InMemoryDocumentStore

_document_store: DocumentStore = None


def get_document_store() -> DocumentStore:
    """Dependency to get the document store instance."""
    if _document_store is None:
        logger.error("Document store not initialized.")
        raise ConnectionError("Document store not initialized.")
    return _document_store


async def _build_change_feed() -> ChangeFeed:
    if settings.CHANGE_FEED_BACKEND == "redis":
        try:
            redis_client = await get_redis_client()
        except ConnectionError:
            logger.warning("Redis unavailable, falling back to an in-process change feed.")
        else:
            return RedisChangeFeed(redis_client, settings.REDIS_CHANNEL)
    return LocalChangeFeed()


async def init_document_store():
    """Builds the configured store; expects init_db and init_redis_client to have run."""
    global _document_store
    if settings.STORE_BACKEND == "sql" and database.async_engine is None:
        raise ConnectionError("Database engine not initialized.")
    feed = await _build_change_feed()
    await feed.start()

    if settings.STORE_BACKEND == "sql":
        from johari.services.sql_store import SqlDocumentStore
        _document_store = SqlDocumentStore(database.async_engine, feed=feed, timeout=settings.STORE_TIMEOUT_SECONDS)
    else:
        _document_store = InMemoryDocumentStore(feed=feed, timeout=settings.STORE_TIMEOUT_SECONDS)
    logger.info(f"Document store initialized ({settings.STORE_BACKEND} store, {type(feed).__name__})")


async def close_document_store():
    global _document_store
    if _document_store:
        await _document_store.feed.stop()
        _document_store = None
        logger.info("Document store closed")
