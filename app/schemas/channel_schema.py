# app/schemas/channel_schema.py

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from models.enums import ChannelType


class ChannelResponse(BaseModel):
    """Channel as seen by a member. Never carries the access code."""
    id: int
    alliance_id: int
    name: str
    type: ChannelType
    description: Optional[str] = None
    is_private: bool
    can_read: list[str]
    can_write: list[str]
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChannelListResponse(BaseModel):
    channels: list[ChannelResponse]


class AuthorizedUserResponse(BaseModel):
    user_id: int
    nickname: Optional[str] = None
    authorized_at: datetime
    authorized_by: Optional[int] = None


class ChannelInfoResponse(ChannelResponse):
    """Channel details for leaders, officers and the channel creator"""
    access_code: Optional[str] = None
    authorized_users: list[AuthorizedUserResponse] = []


class CreatePrivateChannelRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=200)


class CreatePrivateChannelResponse(BaseModel):
    channel: ChannelResponse
    access_code: str


class RedeemAccessCodeRequest(BaseModel):
    access_code: str = Field(..., min_length=1, max_length=16)


class RedeemAccessCodeResponse(BaseModel):
    channel: ChannelResponse
    message: str
