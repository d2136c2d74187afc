# johari/core/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str
    POSTGRES_DB: Optional[str] = None # Only used to create the database on startup
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_CHANNEL: str = "johari:changes"

    DATABASE_ECHO_SQL: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_TIMEOUT: int = 30

    SECRET_KEY: str = "your_super_secret_key_change_me_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # Store backends
    STORE_BACKEND: Literal["sql", "memory"] = "sql"
    CHANGE_FEED_BACKEND: Literal["redis", "local"] = "redis"
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Cap on the number of descriptors in a single submission. None means uncapped.
    MAX_SELECTIONS: Optional[int] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
