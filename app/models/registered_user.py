# app/models/registered_user.py

from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTable
from infrastructure.postgres_connection import Base, utcnow
from models.enums import Language


class RegisteredUser(Base, SQLAlchemyBaseUserTable[int]):
    """Registered user integrated with fastapi-users"""
    __tablename__ = "registered_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    nickname: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    preferred_language: Mapped[str] = mapped_column(String(5), nullable=False, default=Language.TR.value)
    alliance_server: Mapped[str | None] = mapped_column(String(30), nullable=True, index=True)

    # Presence
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # fastapi-users provides these fields automatically:
    # - email: str (unique, indexed)
    # - hashed_password: str
    # - is_active: bool (default True)
    # - is_superuser: bool (default False)
    # - is_verified: bool (default False)

    def __repr__(self):
        return f"<RegisteredUser(id={self.id}, nickname='{self.nickname}', language='{self.preferred_language}')>"
