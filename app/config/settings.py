# app/config/settings.py

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DECODE_RESPONSES: bool = True
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 2.0

    # PostgreSQL Configuration
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "alliance_hq_db"

    # Application Configuration
    APP_NAME: str = "Alliance HQ Backend"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # JWT Authentication Configuration
    SECRET_KEY: str = "CHANGE-THIS-SECRET-KEY-IN-PRODUCTION-USE-ENV-FILE"  # Must be changed in .env file!
    JWT_LIFETIME_SECONDS: int = 7 * 24 * 3600  # 7 days
    AUTH_COOKIE_NAME: str = "alliance_auth"

    # Translation Configuration
    GOOGLE_TRANSLATE_API_KEY: Optional[str] = None  # Without a key messages are delivered untranslated
    GOOGLE_TRANSLATE_URL: str = "https://translation.googleapis.com/language/translate/v2"
    TRANSLATION_TIMEOUT_SECONDS: float = 5.0
    TRANSLATION_CACHE_TTL_SECONDS: int = 24 * 3600
    TRANSLATION_CACHE_TIMEOUT_SECONDS: float = 0.5
    DEFAULT_LANGUAGE: str = "tr"

    # Alliance / Messaging Configuration
    ACCESS_CODE_LENGTH: int = 6
    INVITE_CODE_LENGTH: int = 8
    MAX_MESSAGE_LENGTH: int = 2000
    MESSAGE_PAGE_SIZE: int = 50

    # Socket.IO Configuration
    SOCKETIO_REDIS_BACKPLANE: bool = False  # Route emits through Redis pub/sub (multi-process deployments)

    @property
    def DATABASE_URL(self) -> str:
        """Construct PostgreSQL connection URL for SQLAlchemy"""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def REDIS_URL(self) -> str:
        """Construct Redis URL (used by the Socket.IO message queue)"""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
