from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from loguru import logger
from johari.core.config import settings
from johari.core.errors import JohariError
from johari.api.v1.router import api_router
from johari.core.database import init_db, dispose_db
from johari.core.redis_client import init_redis_client, close_redis_client
from johari.core.store_client import init_document_store, close_document_store

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the FastAPI application.
    Initializes and closes connections to external services.
    """
    logger.info("Johari Window Service starting up (Lifespan event)...")

    # Initialize database
    if settings.STORE_BACKEND == "sql":
        try:
            await init_db()
            logger.info("Database startup initialization complete.")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")

    # Initialize Redis client
    if settings.CHANGE_FEED_BACKEND == "redis":
        try:
            await init_redis_client()
            logger.info("Redis client startup initialization complete.")
        except Exception as e:
            logger.error(f"Redis client initialization failed: {e}")

    # Initialize the document store on top of them
    try:
        await init_document_store()
        logger.info("Document store startup initialization complete.")
    except Exception as e:
        logger.error(f"Document store initialization failed: {e}")
        # Session endpoints answer 503 until the store is reachable

    yield # This line separates startup from shutdown

    logger.info("Johari Window Service shutting down (Lifespan event)...")
    await close_document_store()
    await close_redis_client()
    await dispose_db()


app=FastAPI(
    title="Johari Window",
    description="Self-assessment and peer feedback sessions partitioned into Johari windows.",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(JohariError)
async def johari_error_handler(request: Request, exc: JohariError):
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


app.include_router(api_router,prefix="/v1")
