"""
Unit tests for the Socket.IO connection registry and connection authentication

Tests cover:
- Multiple connections per user
- First/last connection detection
- Snapshot reads under concurrent mutation
- Token extraction from auth payload, query string and cookie
- JWT authentication
"""
import threading
import pytest
from unittest.mock import patch
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from infrastructure.socketio_manager import ConnectionRegistry, extract_token, authenticate_user
from models.registered_user import RegisteredUser
from config.settings import settings


@pytest.mark.unit
class TestConnectionRegistry:
    """Test cases for ConnectionRegistry"""

    def test_register_reports_first_connection(self):
        registry = ConnectionRegistry()

        assert registry.register("sid-1", 1, "Kurt") is True
        assert registry.register("sid-2", 1, "Kurt") is False
        assert registry.connections_for(1) == frozenset({"sid-1", "sid-2"})
        assert registry.get_user_id("sid-2") == 1
        assert registry.get_nickname(1) == "Kurt"

    def test_unregister_reports_last_connection(self):
        # Arrange
        registry = ConnectionRegistry()
        registry.register("sid-1", 1, "Kurt")
        registry.register("sid-2", 1, "Kurt")

        # Act & Assert
        assert registry.unregister("sid-1") == (1, False)
        assert registry.is_user_online(1) is True
        assert registry.unregister("sid-2") == (1, True)
        assert registry.is_user_online(1) is False
        assert registry.get_nickname(1) is None
        assert registry.connections_for(1) == frozenset()

    def test_unregister_unknown_sid(self):
        registry = ConnectionRegistry()

        assert registry.unregister("nobody") == (None, False)

    def test_online_counts(self):
        registry = ConnectionRegistry()
        registry.register("sid-1", 1)
        registry.register("sid-2", 1)
        registry.register("sid-3", 2)

        assert registry.get_online_users_count() == 2
        assert registry.online_user_ids() == frozenset({1, 2})

    def test_snapshot_is_unaffected_by_later_changes(self):
        registry = ConnectionRegistry()
        registry.register("sid-1", 1)

        snapshot = registry.connections_for(1)
        registry.register("sid-2", 1)
        registry.unregister("sid-1")

        assert snapshot == frozenset({"sid-1"})

    def test_concurrent_register_and_unregister(self):
        # Arrange
        registry = ConnectionRegistry()
        first_flags = []

        def connect_and_disconnect(worker: int):
            for i in range(200):
                sid = f"sid-{worker}-{i}"
                first_flags.append(registry.register(sid, 7))
                registry.connections_for(7)
                registry.unregister(sid)

        # Keep one connection open so no thread ever sees an empty set
        registry.register("anchor", 7)
        threads = [threading.Thread(target=connect_and_disconnect, args=(w,)) for w in range(8)]

        # Act
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Assert
        assert not any(first_flags)
        assert registry.connections_for(7) == frozenset({"anchor"})
        assert registry.unregister("anchor") == (7, True)


@pytest.mark.unit
class TestExtractToken:
    """Test cases for extract_token"""

    def test_auth_payload_wins(self):
        environ = {"QUERY_STRING": "token=from-query", "HTTP_COOKIE": f"{settings.AUTH_COOKIE_NAME}=from-cookie"}

        assert extract_token(environ, {"token": "from-auth"}) == "from-auth"

    def test_query_string(self):
        environ = {"QUERY_STRING": "EIO=4&transport=websocket&token=from-query"}

        assert extract_token(environ) == "from-query"

    def test_cookie(self):
        environ = {"HTTP_COOKIE": f"other=1; {settings.AUTH_COOKIE_NAME}=from-cookie"}

        assert extract_token(environ) == "from-cookie"

    def test_no_token(self):
        assert extract_token({}) is None
        assert extract_token({"HTTP_COOKIE": "other=1"}, auth={}) is None


def _token(user_id, audience="fastapi-users:auth", secret=None) -> str:
    return jwt.encode(
        {"sub": str(user_id), "aud": audience},
        secret or settings.SECRET_KEY,
        algorithm="HS256",
    )


@pytest.mark.unit
class TestAuthenticateUser:
    """Test cases for authenticate_user"""

    async def test_valid_token(
        self,
        session_factory,
        leader: RegisteredUser,
    ):
        with patch('infrastructure.socketio_manager.get_session_factory', return_value=session_factory):
            user = await authenticate_user(_token(leader.id))

        assert user is not None
        assert user.id == leader.id

    async def test_wrong_secret(self, session_factory, leader: RegisteredUser):
        with patch('infrastructure.socketio_manager.get_session_factory', return_value=session_factory):
            user = await authenticate_user(_token(leader.id, secret="not-the-secret"))

        assert user is None

    async def test_wrong_audience(self, session_factory, leader: RegisteredUser):
        with patch('infrastructure.socketio_manager.get_session_factory', return_value=session_factory):
            user = await authenticate_user(_token(leader.id, audience="someone-else"))

        assert user is None

    async def test_inactive_user(
        self,
        db_session: AsyncSession,
        session_factory,
        leader: RegisteredUser,
    ):
        leader.is_active = False
        await db_session.commit()

        with patch('infrastructure.socketio_manager.get_session_factory', return_value=session_factory):
            user = await authenticate_user(_token(leader.id))

        assert user is None
