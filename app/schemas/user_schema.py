# app/schemas/user_schema.py

from datetime import datetime
from fastapi_users import schemas
from typing import Optional
from pydantic import EmailStr, Field, ConfigDict, field_validator, BaseModel
from models.enums import Language


class UserValidatorsMixin:
    """Validators shared by the create and update schemas"""

    @field_validator('nickname', check_fields=False)
    @classmethod
    def validate_nickname(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError('Nickname cannot be empty or only whitespace')
        return v

    @field_validator('password', check_fields=False)
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v

    @field_validator('alliance_server', check_fields=False)
    @classmethod
    def validate_alliance_server(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError('Alliance server cannot be empty')
        return v


class UserRead(schemas.BaseUser[int]):
    """Schema for reading user data"""
    nickname: str
    email: str
    is_active: bool = True
    is_superuser: bool = False
    is_verified: bool = False
    preferred_language: Language
    alliance_server: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None


class UserCreate(UserValidatorsMixin, schemas.BaseUserCreate):
    """Registration payload; alliance_server decides which alliance the user lands in"""
    email: EmailStr
    password: str = Field(..., min_length=6)
    nickname: str = Field(..., min_length=2, max_length=20)
    preferred_language: Language = Language.TR.value
    alliance_server: str = Field(..., min_length=1, max_length=30)

    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "email": "warlord@example.com",
                "password": "strongpassword123",
                "nickname": "Warlord",
                "preferred_language": "tr",
                "alliance_server": "S-142"
            }
        }
    )


class UserUpdate(UserValidatorsMixin, schemas.BaseUserUpdate):
    """Patchable profile fields. The alliance server is fixed at registration."""
    email: None = None

    nickname: Optional[str] = Field(None, min_length=2, max_length=20)
    password: Optional[str] = Field(None, min_length=6)
    preferred_language: Optional[Language] = None

    model_config = ConfigDict(use_enum_values=True)


class LanguageInfo(BaseModel):
    code: Language
    name: str


class OnlineCountResponse(BaseModel):
    count: int
