"""
Pytest configuration and fixtures for testing
"""
import pytest
from typing import AsyncGenerator
from unittest.mock import patch
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from infrastructure.postgres_connection import Base
from infrastructure.socketio_manager import ConnectionRegistry
from models.registered_user import RegisteredUser
from models.alliance import Alliance
from models.enums import AllianceRole
from services.alliance_service import AllianceService
from services.translation_service import TranslationService
from test_helpers import FakeTranslationProvider, FakeSocketServer


# Test database URL - using file-based SQLite to avoid in-memory connection issues
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


@pytest.fixture(scope="function")
async def db_engine():
    """Create a test database engine"""
    # Import all models to ensure they're registered with Base.metadata
    import models  # noqa: F401

    import os
    # Remove test database if it exists
    if os.path.exists("./test.db"):
        os.remove("./test.db")

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables and close
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Remove test database file
    if os.path.exists("./test.db"):
        os.remove("./test.db")


@pytest.fixture(scope="function")
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_alliance_locks():
    """asyncio locks are bound to the loop of the test that first used them"""
    AllianceService._locks.clear()
    yield
    AllianceService._locks.clear()


async def _create_user(db_session: AsyncSession, nickname: str, language: str, server: str = "S-142") -> RegisteredUser:
    user = RegisteredUser(
        email=f"{nickname.lower()}@test.com",
        hashed_password=f"hashed_password_{nickname.lower()}",
        nickname=nickname,
        preferred_language=language,
        alliance_server=server,
        is_active=True,
        is_superuser=False,
        is_verified=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def leader(db_session: AsyncSession) -> RegisteredUser:
    """M1: alliance leader writing Turkish"""
    return await _create_user(db_session, "Kurt", "tr")


@pytest.fixture
async def officer(db_session: AsyncSession) -> RegisteredUser:
    """M2: officer reading English"""
    return await _create_user(db_session, "Hawk", "en")


@pytest.fixture
async def member(db_session: AsyncSession) -> RegisteredUser:
    """M3: plain member reading German"""
    return await _create_user(db_session, "Wolf", "de")


@pytest.fixture
async def outsider(db_session: AsyncSession) -> RegisteredUser:
    """Registered user on another server, not in the alliance"""
    return await _create_user(db_session, "Stranger", "fr", server="S-999")


@pytest.fixture
async def alliance(
    db_session: AsyncSession,
    leader: RegisteredUser,
    officer: RegisteredUser,
    member: RegisteredUser,
) -> Alliance:
    """WLF alliance: leader (tr), officer (en), member (de) with the default channels"""
    created = await AllianceService.create_alliance(
        db_session,
        leader_id=leader.id,
        name="Wolves",
        tag="WLF",
        server_name="S-142",
    )
    await AllianceService._add_member(db_session, created.id, officer.id)
    await AllianceService._add_member(db_session, created.id, member.id)
    await AllianceService.change_member_role(db_session, created.id, leader.id, officer.id, AllianceRole.OFFICER)
    return await AllianceService.get_alliance(db_session, created.id)


@pytest.fixture
def translation_provider() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest.fixture
def translator(translation_provider: FakeTranslationProvider):
    """Route message translations through the fake provider"""
    service = TranslationService(translation_provider, timeout_seconds=0.2)
    with patch('services.message_service.translation_service', service):
        yield service


@pytest.fixture
def fake_sio():
    """Record Socket.IO traffic instead of sending it"""
    server = FakeSocketServer()
    with patch('services.delivery_service.sio', server):
        yield server


@pytest.fixture
def connection_registry():
    """Fresh connection registry shared by delivery and the socket namespace"""
    registry = ConnectionRegistry()
    with patch('infrastructure.socketio_manager.registry', registry), \
         patch('services.delivery_service.registry', registry), \
         patch('api.socketio.alliance_namespace.registry', registry):
        yield registry


@pytest.fixture
async def redis_client():
    """Create a test Redis client using fakeredis"""
    import fakeredis.aioredis

    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)

    yield redis

    # Cleanup
    await redis.flushall()
    await redis.aclose()
