# app/schemas/message_schema.py

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import Any, Optional, Union
from models.enums import ChannelType, Language, MessageType


class OriginalContent(BaseModel):
    text: str
    language: str


class TranslationResponse(BaseModel):
    language: str
    text: str
    translated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageContent(BaseModel):
    """Original text plus every stored translation"""
    original: OriginalContent
    translations: list[TranslationResponse]


class EditHistoryEntry(BaseModel):
    content: str
    edited_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageSender(BaseModel):
    id: int
    nickname: str
    preferred_language: str


class Attachment(BaseModel):
    """Attachment metadata; files are uploaded elsewhere"""
    type: MessageType = MessageType.FILE
    filename: str = Field(..., max_length=255)
    url: str = Field(..., max_length=1000)
    size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = Field(None, validation_alias=AliasChoices("mime_type", "mimeType"))


class AllianceMessageResponse(BaseModel):
    """Schema for a message as delivered to clients"""
    id: int
    alliance_id: int
    channel_id: int
    sender: Optional[MessageSender] = None
    content: MessageContent
    message_type: MessageType
    attachments: list[dict[str, Any]] = []
    reply_to_id: Optional[int] = None
    is_edited: bool
    edit_history: list[EditHistoryEntry] = []
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    is_pinned: bool
    created_at: datetime
    updated_at: datetime
    display_content: Optional[str] = None  # Text in the viewer's language (HTTP reads only)


class MessageHistoryResponse(BaseModel):
    """Cursor-based page of channel messages, oldest first"""
    messages: list[AllianceMessageResponse]
    limit: int
    has_more: bool
    next_cursor: Optional[int]  # ID of the oldest message in the current batch
    channel_id: int
    include_deleted: bool = False


class MessageSearchResponse(BaseModel):
    messages: list[AllianceMessageResponse]
    query: str
    total: int


class PinMessageRequest(BaseModel):
    is_pinned: bool = True


# Socket.IO Event DTOs

class SendAllianceMessageEvent(BaseModel):
    """Schema for send_message Socket.IO event

    The channel is addressed either by id or by type (first public channel of
    that type, e.g. "general").
    """
    alliance_id: int = Field(..., validation_alias=AliasChoices("alliance_id", "allianceId"))
    channel_id: Optional[int] = Field(None, validation_alias=AliasChoices("channel_id", "channelId"))
    channel: Optional[ChannelType] = None
    content: str = Field(..., min_length=1)
    message_type: MessageType = Field(MessageType.TEXT, validation_alias=AliasChoices("message_type", "messageType"))
    attachments: list[Attachment] = []
    reply_to: Optional[int] = Field(None, validation_alias=AliasChoices("reply_to", "replyTo"))
    language: Optional[Language] = None

    @model_validator(mode='after')
    def require_channel(self):
        if self.channel_id is None and self.channel is None:
            raise ValueError('Either channel_id or channel is required')
        return self


class EditMessageEvent(BaseModel):
    message_id: int = Field(..., validation_alias=AliasChoices("message_id", "messageId"))
    new_content: str = Field(..., min_length=1, validation_alias=AliasChoices("new_content", "newContent"))


class DeleteMessageEvent(BaseModel):
    message_id: int = Field(..., validation_alias=AliasChoices("message_id", "messageId"))


class TypingEvent(BaseModel):
    """Schema for typing_start / typing_stop Socket.IO events"""
    alliance_id: int = Field(..., validation_alias=AliasChoices("alliance_id", "allianceId"))
    channel: Union[int, str]


class ChannelRef(BaseModel):
    id: int
    name: str
    type: ChannelType


class NewMessageResponse(BaseModel):
    """Payload of the new_message event"""
    message: AllianceMessageResponse
    channel: ChannelRef
    is_private_channel: bool


class MessageEditedResponse(BaseModel):
    message_id: int
    channel_id: int
    new_content: MessageContent
    is_edited: bool
    edit_history: list[EditHistoryEntry]


class MessageDeletedResponse(BaseModel):
    message_id: int
    channel_id: int
    deleted_by: int


class UserTypingResponse(BaseModel):
    user_id: int
    nickname: Optional[str] = None
    channel: Union[int, str]


class UserStopTypingResponse(BaseModel):
    user_id: int
    channel: Union[int, str]


class PresenceResponse(BaseModel):
    """Payload of user_online / user_offline"""
    user_id: int
    nickname: Optional[str] = None
    is_online: bool
    last_seen: Optional[datetime] = None


class SocketErrorResponse(BaseModel):
    """Error payload emitted only to the originating socket"""
    message: str
    errors: Optional[list] = None
