# app/services/user_manager.py

from typing import Optional
from fastapi import Depends, Request
from fastapi_users import BaseUserManager, IntegerIDMixin
from sqlalchemy import select
from models.registered_user import RegisteredUser
from infrastructure.user_database import get_user_db
from config.settings import settings
from schemas.user_schema import UserCreate, UserUpdate
from services.alliance_service import AllianceService
import logging

logger = logging.getLogger(__name__)


class NicknameAlreadyExists(Exception):
    """Exception raised when nickname is already taken"""
    pass


class EmailAlreadyExists(Exception):
    """Exception raised when email is already registered"""
    pass


class UserManager(IntegerIDMixin, BaseUserManager[RegisteredUser, int]):
    """User manager for registered users with custom hooks"""

    reset_password_token_secret = settings.SECRET_KEY
    verification_token_secret = settings.SECRET_KEY

    async def validate_email_unique(self, email: str, exclude_user_id: Optional[int] = None):
        """
        Raises:
            EmailAlreadyExists: If email is already registered
        """
        query = select(RegisteredUser).where(RegisteredUser.email == email)
        if exclude_user_id is not None:
            query = query.where(RegisteredUser.id != exclude_user_id)

        result = await self.user_db.session.execute(query)
        if result.scalar_one_or_none() is not None:
            raise EmailAlreadyExists(f"Email '{email}' is already registered")

    async def validate_nickname_unique(self, nickname: str, exclude_user_id: Optional[int] = None):
        """
        Raises:
            NicknameAlreadyExists: If nickname is already taken
        """
        query = select(RegisteredUser).where(RegisteredUser.nickname == nickname)
        if exclude_user_id is not None:
            query = query.where(RegisteredUser.id != exclude_user_id)

        result = await self.user_db.session.execute(query)
        if result.scalar_one_or_none() is not None:
            raise NicknameAlreadyExists(f"Nickname '{nickname}' is already taken")

    async def on_after_register(self, user: RegisteredUser, request: Optional[Request] = None):
        """Place the new user in their server's alliance (founding it if they are first)"""
        alliance, role = await AllianceService.bootstrap_or_join(self.user_db.session, user)
        logger.info(f"User {user.id} ({user.nickname}) registered and joined alliance {alliance.id} as {role.value}")

    async def on_after_login(
        self,
        user: RegisteredUser,
        request: Optional[Request] = None,
        response=None
    ):
        logger.info(f"User {user.id} ({user.nickname}) has logged in")

    async def create(self, user_create: UserCreate, safe: bool = False, request: Optional[Request] = None) -> RegisteredUser:
        """Validate nickname and email uniqueness before creating the user"""
        await self.validate_email_unique(user_create.email)
        await self.validate_nickname_unique(user_create.nickname)
        return await super().create(user_create, safe=safe, request=request)

    async def update(
        self,
        user_update: UserUpdate,
        user: RegisteredUser,
        safe: bool = False,
        request: Optional[Request] = None,
    ) -> RegisteredUser:
        """Validate nickname uniqueness when it is being changed"""
        if user_update.nickname is not None and user_update.nickname != user.nickname:
            await self.validate_nickname_unique(user_update.nickname, exclude_user_id=user.id)

        return await super().update(user_update, user, safe=safe, request=request)


async def get_user_manager(user_db=Depends(get_user_db)):
    """Dependency to get the user manager"""
    yield UserManager(user_db)
