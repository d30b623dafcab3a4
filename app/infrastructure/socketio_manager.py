# app/infrastructure/socketio_manager.py

import threading
from http.cookies import SimpleCookie
from typing import Dict, Optional
from urllib.parse import parse_qs

import socketio
from socketio import exceptions as socketio_exceptions
from jose import jwt, JWTError
from sqlalchemy import select
from models.registered_user import RegisteredUser
from config.settings import settings
from infrastructure.postgres_connection import get_session_factory
import logging

# Setup logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks which Socket.IO sessions belong to which user.

    A user may hold several connections at once (phone + desktop). All
    mutations happen under a lock and readers receive snapshots, so delivery
    can iterate a user's connections while they connect or disconnect.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # Maps user_id to the set of their session ids
        self._connections: Dict[int, set[str]] = {}
        # Maps session id to user_id
        self._sid_to_user: Dict[str, int] = {}
        # Maps user_id to nickname (cached for typing/presence payloads)
        self._user_to_nickname: Dict[int, str] = {}

    def register(self, sid: str, user_id: int, nickname: Optional[str] = None) -> bool:
        """
        Register a connection.

        Returns:
            True if this is the user's first live connection
        """
        with self._lock:
            sessions = self._connections.setdefault(user_id, set())
            first_connection = not sessions
            sessions.add(sid)
            self._sid_to_user[sid] = user_id
            if nickname:
                self._user_to_nickname[user_id] = nickname
        logger.info(f"Registered connection {sid} for user {user_id} (first={first_connection})")
        return first_connection

    def unregister(self, sid: str) -> tuple[Optional[int], bool]:
        """
        Remove a connection.

        Returns:
            (user_id, was_last_connection); user_id is None for unknown sids
        """
        with self._lock:
            user_id = self._sid_to_user.pop(sid, None)
            if user_id is None:
                return None, False
            sessions = self._connections.get(user_id, set())
            sessions.discard(sid)
            was_last = not sessions
            if was_last:
                self._connections.pop(user_id, None)
                self._user_to_nickname.pop(user_id, None)
        logger.info(f"Unregistered connection {sid} for user {user_id} (last={was_last})")
        return user_id, was_last

    def connections_for(self, user_id: int) -> frozenset[str]:
        """Snapshot of the user's live session ids"""
        with self._lock:
            return frozenset(self._connections.get(user_id, ()))

    def get_user_id(self, sid: str) -> Optional[int]:
        with self._lock:
            return self._sid_to_user.get(sid)

    def get_nickname(self, user_id: int) -> Optional[str]:
        with self._lock:
            return self._user_to_nickname.get(user_id)

    def is_user_online(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))

    def online_user_ids(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._connections)

    def get_online_users_count(self) -> int:
        with self._lock:
            return len(self._connections)


async def authenticate_user(token: str) -> Optional[RegisteredUser]:
    """
    Authenticate a socket connection from a fastapi-users JWT.

    Returns:
        The active RegisteredUser, or None for invalid/expired tokens
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=["HS256"],
            audience="fastapi-users:auth"  # fastapi-users uses this audience
        )
    except JWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token missing 'sub' claim")
        return None

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(
            select(RegisteredUser).where(
                RegisteredUser.id == int(user_id),
                RegisteredUser.is_active == True
            )
        )
        user = result.scalar_one_or_none()

    if not user:
        logger.warning(f"User not found for id: {user_id}")
    return user


def extract_token(environ: dict, auth: Optional[dict] = None) -> Optional[str]:
    """
    Find the JWT for a connection attempt.

    Looked up in order: the Socket.IO `auth` payload, the `token` query
    parameter, then the auth cookie.
    """
    if isinstance(auth, dict) and auth.get('token'):
        return auth['token']

    query_string = environ.get('QUERY_STRING', '')
    if query_string:
        token = parse_qs(query_string).get('token', [None])[0]
        if token:
            return token

    cookie_header = environ.get('HTTP_COOKIE', '')
    if cookie_header:
        cookie = SimpleCookie()
        cookie.load(cookie_header)
        if settings.AUTH_COOKIE_NAME in cookie:
            return cookie[settings.AUTH_COOKIE_NAME].value

    return None


def _build_client_manager() -> Optional[socketio.AsyncRedisManager]:
    if not settings.SOCKETIO_REDIS_BACKPLANE:
        return None
    logger.info("Socket.IO using Redis message queue")
    return socketio.AsyncRedisManager(settings.REDIS_URL)


# Create global Socket.IO server
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins=settings.CORS_ORIGINS,
    client_manager=_build_client_manager(),
    logger=settings.DEBUG,
    engineio_logger=settings.DEBUG,
    ping_timeout=60,
    ping_interval=25
)

# Global connection registry instance
registry = ConnectionRegistry()


class AuthNamespace(socketio.AsyncNamespace):
    """Namespace that authenticates every connection and tracks it in the registry.

    Subclasses implement `handle_connect(self, sid, user, first_connection)`
    and/or `handle_disconnect(self, sid, user_id, was_last)` for namespace
    specific behaviour.
    """

    async def on_connect(self, sid, environ, auth=None):
        token = extract_token(environ, auth)
        if not token:
            logger.warning(f"Connection attempt without token from {sid} to {self.namespace}")
            raise socketio_exceptions.ConnectionRefusedError(
                'Authentication required. Provide a token in the auth payload, query string or login cookie.'
            )

        user = await authenticate_user(token)
        if not user:
            logger.warning(f"Authentication failed for session {sid} on {self.namespace}")
            raise socketio_exceptions.ConnectionRefusedError('Invalid or expired token')

        first_connection = registry.register(sid, user.id, user.nickname)

        if hasattr(self, 'handle_connect'):
            try:
                await self.handle_connect(sid, user, first_connection)
            except Exception:
                logger.exception('Error in handle_connect hook')

    async def on_disconnect(self, sid, reason=None):
        logger.info(f"Client disconnected from {self.namespace}: {sid} ({reason})")
        user_id, was_last = registry.unregister(sid)
        if user_id is None:
            return

        if hasattr(self, 'handle_disconnect'):
            try:
                await self.handle_disconnect(sid, user_id, was_last)
            except Exception:
                logger.exception('Error in handle_disconnect hook')
