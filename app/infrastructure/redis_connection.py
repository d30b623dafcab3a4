# app/infrastructure/redis_connection.py

from typing import Optional
import redis.asyncio as aioredis
from config.settings import settings


class RedisConnection:
    """Redis connection manager (translation cache, Socket.IO message queue)"""

    def __init__(self):
        self.client: aioredis.Redis | None = None

    async def connect(self):
        """Connect to Redis"""
        if self.client is not None:
            return  # Already connected

        try:
            self.client = aioredis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                db=settings.REDIS_DB,
                password=settings.REDIS_PASSWORD,
                decode_responses=settings.REDIS_DECODE_RESPONSES,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            )
            await self.client.ping()
            print(f"✅ Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        except Exception as e:
            print(f"❌ Failed to connect to Redis: {e}")
            self.client = None
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.client:
            await self.client.aclose()
            self.client = None
            print("✅ Disconnected from Redis")


# Shared instance
redis_connection = RedisConnection()


def get_optional_redis() -> Optional[aioredis.Redis]:
    """Redis client, or None when Redis has not been connected (e.g. in tests)"""
    return redis_connection.client
