# app/api/routes/messages.py

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from models.registered_user import RegisteredUser
from schemas.message_schema import (
    AllianceMessageResponse,
    MessageHistoryResponse,
    MessageSearchResponse,
    PinMessageRequest,
)
from services.message_service import MessageService
from infrastructure.postgres_connection import get_db_session
from api.routes.auth import current_active_user
from config.settings import settings


# Create router
messages_router = APIRouter(prefix="/messages", tags=["Messages"])


@messages_router.get("/{alliance_id}/channels/{channel_id}", response_model=MessageHistoryResponse)
async def get_channel_messages(
    alliance_id: int,
    channel_id: int,
    before_message_id: Optional[int] = Query(None, description="Return messages older than this message ID"),
    limit: int = Query(settings.MESSAGE_PAGE_SIZE, ge=1, le=100, description="Number of messages to return"),
    include_deleted: bool = Query(False, description="Include deleted messages (leaders and officers)"),
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get channel history with cursor-based pagination.

    - **before_message_id**: Cursor; pass `next_cursor` from the previous page
    - **limit**: Page size (1-100)

    Each message carries `display_content` in the caller's preferred language.
    """
    return await MessageService.get_channel_messages(
        session=session,
        alliance_id=alliance_id,
        channel_id=channel_id,
        user_id=current_user.id,
        user_language=current_user.preferred_language,
        before_message_id=before_message_id,
        limit=limit,
        include_deleted=include_deleted,
    )


@messages_router.get("/{alliance_id}/channels/{channel_id}/search", response_model=MessageSearchResponse)
async def search_messages(
    alliance_id: int,
    channel_id: int,
    q: str = Query(..., min_length=2, description="Search query (minimum 2 characters)"),
    limit: int = Query(20, ge=1, le=100),
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Search original text and translations in a channel"""
    return await MessageService.search_messages(
        session=session,
        alliance_id=alliance_id,
        channel_id=channel_id,
        user_id=current_user.id,
        query=q,
        user_language=current_user.preferred_language,
        limit=limit,
    )


@messages_router.get("/{alliance_id}/channels/{channel_id}/pinned", response_model=list[AllianceMessageResponse])
async def get_pinned_messages(
    alliance_id: int,
    channel_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await MessageService.get_pinned_messages(
        session=session,
        alliance_id=alliance_id,
        channel_id=channel_id,
        user_id=current_user.id,
        user_language=current_user.preferred_language,
    )


@messages_router.patch("/{message_id}/pin", response_model=AllianceMessageResponse)
async def pin_message(
    message_id: int,
    pin_data: PinMessageRequest,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Pin or unpin a message (leaders and officers)"""
    message = await MessageService.set_pinned(session, message_id, current_user.id, pin_data.is_pinned)
    return MessageService.to_response(message, current_user.preferred_language)
