from sqlalchemy.ext.asyncio import create_async_engine,async_sessionmaker,AsyncEngine,AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from johari.core.config import settings
from loguru import logger
import asyncio

Base=declarative_base()

async_engine=None


def build_engine(database_url:str)->AsyncEngine:
    """Creates an async engine; pool sizing only applies to server databases."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url,echo=settings.DATABASE_ECHO_SQL)
    return create_async_engine(
        database_url,
        echo=settings.DATABASE_ECHO_SQL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,
        pool_pre_ping=True # Ensures connections are alive
    )


def build_sessionmaker(engine:AsyncEngine)->async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False # Prevents objects from expiring after commit
    )


async def create_tables(engine:AsyncEngine):
    from johari.models.document import DocumentRecord  # noqa: F401 registers the table on Base.metadata
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _ensure_postgres_database(server_url:str,database_name:str):
    temp_engine=create_async_engine(server_url,echo=False,isolation_level="AUTOCOMMIT")
    try:
        async with temp_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname=:name"),
                {"name": database_name},
            )
            db_exists = result.scalar_one_or_none()

            if not db_exists:
                logger.info(f"Database '{database_name}' does not exist. Creating it...")
                await conn.execute(text(f'CREATE DATABASE "{database_name}"'))
                logger.info(f"Database '{database_name}' created.")
            else:
                logger.info(f"Database '{database_name}' already exists.")
    finally:
        await temp_engine.dispose()


async def init_db(max_retries:int=10,retry_delay:float=5):
    """
    Initializes the database engine and creates tables if they don't exist.
    On Postgres, when POSTGRES_DB is set, the database itself is created first,
    which is useful for local development setup.
    """
    global async_engine
    if async_engine is not None:
        logger.info("Database engine already initialized.")
        return

    server_url = settings.DATABASE_URL

    for i in range(max_retries):
        try:
            if settings.POSTGRES_DB and server_url.startswith("postgresql"):
                await _ensure_postgres_database(server_url,settings.POSTGRES_DB)

            engine = build_engine(server_url)
            await create_tables(engine)

            async_engine = engine

            logger.info("Database tables initialized successfully (or already existed).")
            break # Exit loop if successful

        except Exception as e:
            logger.error(f"Failed to connect to database or create tables (Attempt {i+1}/{max_retries}): {e}")
            if i < max_retries - 1:
                logger.info(f"Retrying database connection in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
            else:
                logger.critical("Maximum database connection retries reached. Exiting startup.")
                raise


async def dispose_db():
    """Disposes the database engine connections."""
    global async_engine
    if async_engine:
        await async_engine.dispose()
        async_engine=None
        logger.info("Database engine connections disposed.")
