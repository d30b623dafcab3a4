# app/infrastructure/postgres_connection.py

from datetime import datetime, UTC
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


# Base class for SQLAlchemy models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without time zone)"""
    return datetime.now(UTC).replace(tzinfo=None)


class PostgresConnection:
    """PostgreSQL connection manager using SQLAlchemy"""

    def __init__(self):
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    async def connect(self, database_url: str | None = None):
        """Connect to the database (defaults to settings.DATABASE_URL)"""
        if self.engine is not None:
            return  # Already connected

        url = database_url or settings.DATABASE_URL
        engine_options = {"echo": settings.DEBUG, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            engine_options.update(pool_size=10, max_overflow=20)

        try:
            self.engine = create_async_engine(url, **engine_options)
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            # Test connection
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            print(f"✅ Connected to database at {self.engine.url.render_as_string(hide_password=True)}")
        except Exception as e:
            print(f"❌ Failed to connect to database: {e}")
            self.engine = None
            self.session_factory = None
            raise

    async def disconnect(self):
        """Dispose the engine and its pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            print("✅ Disconnected from database")

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if not self.session_factory:
            raise RuntimeError("Database session factory is not initialized. Call connect() first.")
        return self.session_factory


# Shared instance
postgres_connection = PostgresConnection()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions"""
    return postgres_connection.get_session_factory()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI routes (and Socket.IO handlers) to get a database session.

    The session is committed when the caller finishes without error and rolled
    back otherwise, so a failing operation never leaves a half-applied change.

    Usage in routes:
        @router.get("/alliances/mine")
        async def my_alliances(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back database session after error")
            await session.rollback()
            raise
