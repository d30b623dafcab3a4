# app/schemas/alliance_schema.py

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from models.enums import AllianceRole, Language
from schemas.channel_schema import ChannelResponse


class AllianceCreate(BaseModel):
    """Schema for creating an alliance"""
    name: str = Field(..., min_length=2, max_length=50)
    tag: str = Field(..., min_length=2, max_length=5)
    server_name: str = Field(..., min_length=1, max_length=30)
    description: Optional[str] = Field(None, max_length=500)
    game_name: Optional[str] = Field(None, max_length=50)

    @field_validator('tag')
    @classmethod
    def normalize_tag(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError('Tag can only contain letters and digits')
        return v

    @field_validator('name', 'server_name')
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Value cannot be empty')
        return v


class AllianceSettingsUpdate(BaseModel):
    """Leader-only alliance settings; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    auto_translate: Optional[bool] = None


class ChangeRoleRequest(BaseModel):
    role: AllianceRole


class AllianceMemberResponse(BaseModel):
    user_id: int
    nickname: str
    preferred_language: Language
    role: AllianceRole
    is_online: bool
    last_seen: Optional[datetime] = None
    joined_at: datetime


class AllianceSummaryResponse(BaseModel):
    """Alliance entry in the "my alliances" list"""
    id: int
    name: str
    tag: str
    server_name: str
    description: Optional[str] = None
    game_name: Optional[str] = None
    member_count: int
    my_role: AllianceRole
    auto_translate: bool


class AllianceDetailResponse(BaseModel):
    id: int
    name: str
    tag: str
    server_name: str
    description: Optional[str] = None
    game_name: Optional[str] = None
    leader_id: int
    invite_code: Optional[str] = None  # Only shown to leaders and officers
    auto_translate: bool
    total_messages: int
    created_at: datetime
    my_role: AllianceRole
    members: list[AllianceMemberResponse]
    channels: list[ChannelResponse]


class JoinAllianceResponse(BaseModel):
    alliance: AllianceSummaryResponse
    message: str


class MemberRoleResponse(BaseModel):
    user_id: int
    role: AllianceRole
    message: str


class AllianceStatsResponse(BaseModel):
    total_members: int
    online_members: int
    active_today: int
    active_this_week: int
    new_this_month: int
    role_distribution: dict[str, int]
    total_messages: int
