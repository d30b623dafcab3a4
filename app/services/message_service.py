# app/services/message_service.py

from typing import List, Optional, Tuple

from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from exceptions.domain_exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from infrastructure.postgres_connection import utcnow
from models.alliance import Alliance
from models.channel import AllianceChannel
from models.enums import PRIVILEGED_ROLES, AccessIntent, AllianceRole, ChannelType, MessageType
from models.message import AllianceMessage, MessageEdit, MessageTranslation
from schemas.message_schema import (
    AllianceMessageResponse,
    EditHistoryEntry,
    MessageContent,
    MessageHistoryResponse,
    MessageSearchResponse,
    MessageSender,
    OriginalContent,
    TranslationResponse,
)
from services.alliance_service import AllianceService
from services.channel_access_service import ChannelAccessService
from services.translation_service import translation_service
import logging

logger = logging.getLogger(__name__)


class MessageService:
    """Service for posting, editing, deleting and reading alliance messages"""

    MIN_SEARCH_QUERY_LENGTH = 2
    MAX_PAGE_SIZE = 100

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _validate_content(content: Optional[str]) -> str:
        text = (content or "").strip()
        if not text:
            raise ValidationException(message="Message content cannot be empty")
        if len(text) > settings.MAX_MESSAGE_LENGTH:
            raise ValidationException(
                message=f"Message cannot be longer than {settings.MAX_MESSAGE_LENGTH} characters",
                details={"length": len(text)}
            )
        return text

    @staticmethod
    async def get_message(session: AsyncSession, message_id: int) -> AllianceMessage:
        """
        Load a message with sender, translations and edit history.

        Raises:
            NotFoundException: If the message does not exist
        """
        result = await session.execute(
            select(AllianceMessage)
            .where(AllianceMessage.id == message_id)
            .execution_options(populate_existing=True)
        )
        message = result.scalar_one_or_none()
        if message is None:
            raise NotFoundException(
                message="Message not found",
                details={"message_id": message_id}
            )
        return message

    @staticmethod
    def _set_translation(message: AllianceMessage, language: str, text: str) -> None:
        """Insert or replace the translation for `language`"""
        now = utcnow()
        for translation in message.translations:
            if translation.language == language:
                translation.text = text
                translation.translated_at = now
                return
        message.translations.append(MessageTranslation(language=language, text=text, translated_at=now))

    @staticmethod
    def get_content_for_user(message: AllianceMessage, user_language: Optional[str]) -> str:
        """Text to show a reader of `user_language`; the original when no translation exists"""
        if not user_language or user_language == message.original_language:
            return message.original_text
        for translation in message.translations:
            if translation.language == user_language:
                return translation.text
        return message.original_text

    @staticmethod
    def build_content(message: AllianceMessage) -> MessageContent:
        return MessageContent(
            original=OriginalContent(text=message.original_text, language=message.original_language),
            translations=[TranslationResponse.model_validate(t) for t in message.translations],
        )

    @classmethod
    def to_response(cls, message: AllianceMessage, viewer_language: Optional[str] = None) -> AllianceMessageResponse:
        sender = None
        if message.sender is not None:
            sender = MessageSender(
                id=message.sender.id,
                nickname=message.sender.nickname,
                preferred_language=message.sender.preferred_language,
            )

        return AllianceMessageResponse(
            id=message.id,
            alliance_id=message.alliance_id,
            channel_id=message.channel_id,
            sender=sender,
            content=cls.build_content(message),
            message_type=message.message_type,
            attachments=message.attachments or [],
            reply_to_id=message.reply_to_id,
            is_edited=message.is_edited,
            edit_history=[EditHistoryEntry.model_validate(e) for e in message.edit_history],
            is_deleted=message.is_deleted,
            deleted_at=message.deleted_at,
            is_pinned=message.is_pinned,
            created_at=message.created_at,
            updated_at=message.updated_at,
            display_content=cls.get_content_for_user(message, viewer_language) if viewer_language else None,
        )

    # ------------------------------------------------------------------ writes

    @classmethod
    async def send_message(
        cls,
        session: AsyncSession,
        alliance_id: int,
        sender_id: int,
        content: str,
        channel_id: Optional[int] = None,
        channel_type: Optional[ChannelType | str] = None,
        message_type: MessageType | str = MessageType.TEXT,
        attachments: Optional[list[dict]] = None,
        reply_to_id: Optional[int] = None,
        source_language: Optional[str] = None,
    ) -> Tuple[AllianceMessage, Alliance, AllianceChannel]:
        """
        Persist a message and translate it for every language in the alliance.

        Translation is best effort: a failing language receives the original
        text and the message is still stored and returned.

        Returns:
            (message with translations, alliance, channel)

        Raises:
            NotFoundException: If the alliance, channel or replied-to message is missing
            NotMemberException: If the sender is not in the alliance
            ForbiddenException: If the sender may not post in the channel
            ValidationException: If the content or language is invalid
        """
        alliance = await AllianceService.get_alliance(session, alliance_id)
        channel = ChannelAccessService.resolve_channel(alliance, channel_id=channel_id, channel_type=channel_type)
        ChannelAccessService.require_access(alliance, channel, sender_id, AccessIntent.WRITE)

        text = cls._validate_content(content)
        sender = AllianceService.get_member(alliance, sender_id).user
        language = source_language or (sender.preferred_language if sender else settings.DEFAULT_LANGUAGE)
        if not translation_service.is_language_supported(language):
            raise ValidationException(
                message=f"Unsupported language '{language}'",
                details={"language": language}
            )

        if reply_to_id is not None:
            result = await session.execute(
                select(AllianceMessage.id).where(
                    AllianceMessage.id == reply_to_id,
                    AllianceMessage.channel_id == channel.id,
                )
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundException(
                    message="Replied-to message not found",
                    details={"reply_to": reply_to_id}
                )

        message = AllianceMessage(
            alliance_id=alliance.id,
            channel_id=channel.id,
            sender_id=sender_id,
            original_text=text,
            original_language=language,
            message_type=MessageType(message_type).value,
            attachments=attachments or [],
            reply_to_id=reply_to_id,
            translations=[],
            edit_history=[],
        )
        session.add(message)
        await session.flush()

        targets = translation_service.resolve_target_languages(alliance, language)
        translated = await translation_service.fan_out(text, language, targets)
        for target_language, translated_text in translated.items():
            cls._set_translation(message, target_language, translated_text)

        await session.execute(
            update(Alliance)
            .where(Alliance.id == alliance.id)
            .values(total_messages=Alliance.total_messages + 1)
        )
        await session.commit()

        logger.info(
            f"Message {message.id} posted by user {sender_id} in channel {channel.id} "
            f"(alliance {alliance.id}, translations: {sorted(translated)})"
        )
        return await cls.get_message(session, message.id), alliance, channel

    @classmethod
    async def edit_message(
        cls,
        session: AsyncSession,
        message_id: int,
        editor_id: int,
        new_content: str,
    ) -> AllianceMessage:
        """
        Replace a message's text and re-translate the languages it already has.

        Raises:
            NotFoundException: If the message does not exist
            BadRequestException: If the message was deleted
            ForbiddenException: If the editor is not the sender
            ValidationException: If the new content is invalid
        """
        message = await cls.get_message(session, message_id)
        if message.is_deleted:
            raise BadRequestException(
                message="Deleted messages cannot be edited",
                details={"message_id": message_id}
            )
        if message.sender_id != editor_id:
            raise ForbiddenException(
                message="You can only edit your own messages",
                details={"message_id": message_id}
            )

        text = cls._validate_content(new_content)
        existing_languages = [t.language for t in message.translations]

        message.edit_history.append(MessageEdit(content=message.original_text, edited_at=utcnow()))
        message.original_text = text
        message.is_edited = True

        translated = await translation_service.fan_out(text, message.original_language, existing_languages)
        for language, translated_text in translated.items():
            cls._set_translation(message, language, translated_text)

        await session.commit()
        logger.info(f"Message {message_id} edited by user {editor_id} ({len(translated)} translations refreshed)")
        return await cls.get_message(session, message_id)

    @classmethod
    async def delete_message(cls, session: AsyncSession, message_id: int, requester_id: int) -> AllianceMessage:
        """
        Soft-delete a message. Allowed for the sender and for leaders/officers.

        Raises:
            NotFoundException: If the message does not exist
            BadRequestException: If the message is already deleted
            ForbiddenException: If the requester may not delete it
        """
        message = await cls.get_message(session, message_id)
        if message.is_deleted:
            raise BadRequestException(
                message="Message is already deleted",
                details={"message_id": message_id}
            )

        if message.sender_id != requester_id:
            alliance = await AllianceService.get_alliance(session, message.alliance_id)
            AllianceService.require_role(
                alliance, requester_id, PRIVILEGED_ROLES,
                "You can only delete your own messages"
            )

        message.is_deleted = True
        message.deleted_at = utcnow()
        await session.commit()

        logger.info(f"Message {message_id} deleted by user {requester_id}")
        return await cls.get_message(session, message_id)

    @classmethod
    async def set_pinned(cls, session: AsyncSession, message_id: int, user_id: int, is_pinned: bool) -> AllianceMessage:
        """Pin or unpin a message (leaders and officers only)"""
        message = await cls.get_message(session, message_id)
        if message.is_deleted:
            raise NotFoundException(
                message="Message not found",
                details={"message_id": message_id}
            )

        alliance = await AllianceService.get_alliance(session, message.alliance_id)
        AllianceService.require_role(
            alliance, user_id, PRIVILEGED_ROLES,
            "Only leaders and officers can pin messages"
        )

        message.is_pinned = is_pinned
        await session.commit()
        return await cls.get_message(session, message_id)

    # ------------------------------------------------------------------ reads

    @classmethod
    async def _readable_channel(
        cls,
        session: AsyncSession,
        alliance_id: int,
        channel_id: int,
        user_id: int,
    ) -> Tuple[Alliance, AllianceChannel, AllianceRole]:
        alliance = await AllianceService.get_alliance(session, alliance_id)
        channel = ChannelAccessService.resolve_channel(alliance, channel_id=channel_id)
        ChannelAccessService.require_access(alliance, channel, user_id, AccessIntent.READ)
        role = AllianceRole(AllianceService.get_member(alliance, user_id).role)
        return alliance, channel, role

    @classmethod
    async def get_channel_messages(
        cls,
        session: AsyncSession,
        alliance_id: int,
        channel_id: int,
        user_id: int,
        user_language: Optional[str] = None,
        before_message_id: Optional[int] = None,
        limit: int = 50,
        include_deleted: bool = False,
    ) -> MessageHistoryResponse:
        """
        Channel history with cursor-based pagination, returned oldest first.

        Deleted messages are hidden unless `include_deleted` is set, which is
        restricted to leaders and officers.
        """
        _, channel, role = await cls._readable_channel(session, alliance_id, channel_id, user_id)
        if include_deleted and role not in PRIVILEGED_ROLES:
            raise ForbiddenException(message="Only leaders and officers can view deleted messages")
        limit = max(1, min(limit, cls.MAX_PAGE_SIZE))

        query = select(AllianceMessage).where(AllianceMessage.channel_id == channel.id)
        if not include_deleted:
            query = query.where(AllianceMessage.is_deleted == False)
        if before_message_id is not None:
            query = query.where(AllianceMessage.id < before_message_id)
        query = query.order_by(AllianceMessage.id.desc()).limit(limit + 1)

        result = await session.execute(query)
        messages = list(result.scalars().all())

        # One extra row tells whether an older page exists
        has_more = len(messages) > limit
        messages = messages[:limit]
        next_cursor = messages[-1].id if messages else None
        messages.reverse()

        return MessageHistoryResponse(
            messages=[cls.to_response(m, user_language) for m in messages],
            limit=limit,
            has_more=has_more,
            next_cursor=next_cursor,
            channel_id=channel.id,
            include_deleted=include_deleted,
        )

    @classmethod
    async def search_messages(
        cls,
        session: AsyncSession,
        alliance_id: int,
        channel_id: int,
        user_id: int,
        query: str,
        user_language: Optional[str] = None,
        limit: int = 20,
    ) -> MessageSearchResponse:
        """Case-insensitive search over original and translated text"""
        query = (query or "").strip()
        if len(query) < cls.MIN_SEARCH_QUERY_LENGTH:
            raise ValidationException(
                message=f"Search query must be at least {cls.MIN_SEARCH_QUERY_LENGTH} characters"
            )

        _, channel, _ = await cls._readable_channel(session, alliance_id, channel_id, user_id)
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        translated_match = (
            select(MessageTranslation.message_id)
            .where(func.lower(MessageTranslation.text).like(pattern, escape="\\"))
        )
        stmt = (
            select(AllianceMessage)
            .where(
                AllianceMessage.channel_id == channel.id,
                AllianceMessage.is_deleted == False,
                or_(
                    func.lower(AllianceMessage.original_text).like(pattern, escape="\\"),
                    AllianceMessage.id.in_(translated_match),
                ),
            )
            .order_by(AllianceMessage.id.desc())
            .limit(max(1, min(limit, cls.MAX_PAGE_SIZE)))
        )
        result = await session.execute(stmt)
        messages = result.scalars().all()

        return MessageSearchResponse(
            messages=[cls.to_response(m, user_language) for m in messages],
            query=query,
            total=len(messages),
        )

    @classmethod
    async def get_pinned_messages(
        cls,
        session: AsyncSession,
        alliance_id: int,
        channel_id: int,
        user_id: int,
        user_language: Optional[str] = None,
    ) -> List[AllianceMessageResponse]:
        _, channel, _ = await cls._readable_channel(session, alliance_id, channel_id, user_id)
        result = await session.execute(
            select(AllianceMessage)
            .where(
                AllianceMessage.channel_id == channel.id,
                AllianceMessage.is_pinned == True,
                AllianceMessage.is_deleted == False,
            )
            .order_by(AllianceMessage.id.desc())
        )
        return [cls.to_response(m, user_language) for m in result.scalars().all()]
