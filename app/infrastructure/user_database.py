# app/infrastructure/user_database.py

from typing import AsyncGenerator
from fastapi import Depends
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession
from models.registered_user import RegisteredUser
from infrastructure.postgres_connection import get_db_session


async def get_user_db(session: AsyncSession = Depends(get_db_session)) -> AsyncGenerator[SQLAlchemyUserDatabase, None]:
    """Dependency to get the fastapi-users database adapter"""
    yield SQLAlchemyUserDatabase(session, RegisteredUser)
