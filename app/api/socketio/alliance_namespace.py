# app/api/socketio/alliance_namespace.py

from pydantic import ValidationError
from infrastructure.socketio_manager import sio, registry, AuthNamespace
from infrastructure.postgres_connection import get_db_session
from exceptions.domain_exceptions import DomainException
from models.registered_user import RegisteredUser
from services.delivery_service import DeliveryService, NAMESPACE
from services.message_service import MessageService
from schemas.message_schema import (
    SendAllianceMessageEvent,
    EditMessageEvent,
    DeleteMessageEvent,
    TypingEvent,
    ChannelRef,
    NewMessageResponse,
    MessageEditedResponse,
    MessageDeletedResponse,
    UserTypingResponse,
    UserStopTypingResponse,
    SocketErrorResponse,
)
import logging

logger = logging.getLogger(__name__)


class AllianceNamespace(AuthNamespace):
    """Socket.IO namespace for alliance messaging, typing and presence"""

    async def handle_connect(self, sid, user: RegisteredUser, first_connection: bool):
        logger.info(f"Client authenticated and connected to {NAMESPACE}: {sid} (User: {user.id})")
        async for session in get_db_session():
            alliance_ids = await DeliveryService.user_connected(session, sid, user.id, first_connection)
        logger.info(f"Session {sid} joined alliance rooms {alliance_ids}")

    async def handle_disconnect(self, sid, user_id: int, was_last: bool):
        async for session in get_db_session():
            await DeliveryService.user_disconnected(session, user_id, was_last)

    async def _emit_error(self, sid, message: str, errors: list | None = None):
        error_response = SocketErrorResponse(message=message, errors=errors)
        await self.emit('error', error_response.model_dump(mode='json'), room=sid)

    async def _validate(self, sid, dto_class, data):
        """Parse an event payload; emits an error to the sender and returns None when invalid"""
        try:
            return dto_class.model_validate(data or {})
        except ValidationError as e:
            await self._emit_error(sid, 'Invalid data format', e.errors(include_url=False, include_context=False))
            return None

    def _current_user_id(self, sid):
        return registry.get_user_id(sid)

    async def on_send_message(self, sid, data):
        """
        Post a message to a channel.

        The sender gets the message back through normal delivery like every
        other recipient; failures are reported to the sender only.
        """
        message_dto = await self._validate(sid, SendAllianceMessageEvent, data)
        if message_dto is None:
            return

        user_id = self._current_user_id(sid)
        if not user_id:
            await self._emit_error(sid, 'Not authenticated. Please reconnect.')
            return

        try:
            async for session in get_db_session():
                message, alliance, channel = await MessageService.send_message(
                    session=session,
                    alliance_id=message_dto.alliance_id,
                    sender_id=user_id,
                    content=message_dto.content,
                    channel_id=message_dto.channel_id,
                    channel_type=message_dto.channel,
                    message_type=message_dto.message_type,
                    attachments=[a.model_dump(mode='json') for a in message_dto.attachments],
                    reply_to_id=message_dto.reply_to,
                    source_language=message_dto.language.value if message_dto.language else None,
                )

                response = NewMessageResponse(
                    message=MessageService.to_response(message),
                    channel=ChannelRef(id=channel.id, name=channel.name, type=channel.type),
                    is_private_channel=channel.is_private,
                )
                await DeliveryService.deliver(
                    session, alliance.id, channel.id, 'new_message', response.model_dump(mode='json')
                )
        except DomainException as e:
            logger.info(f"send_message rejected for user {user_id}: {e.message}")
            await self._emit_error(sid, e.message)
        except Exception:
            logger.exception(f"Error in send_message for user {user_id}")
            await self._emit_error(sid, 'Failed to send message')

    async def on_edit_message(self, sid, data):
        edit_dto = await self._validate(sid, EditMessageEvent, data)
        if edit_dto is None:
            return

        user_id = self._current_user_id(sid)
        if not user_id:
            await self._emit_error(sid, 'Not authenticated. Please reconnect.')
            return

        try:
            async for session in get_db_session():
                message = await MessageService.edit_message(
                    session=session,
                    message_id=edit_dto.message_id,
                    editor_id=user_id,
                    new_content=edit_dto.new_content,
                )
                response = MessageEditedResponse(
                    message_id=message.id,
                    channel_id=message.channel_id,
                    new_content=MessageService.build_content(message),
                    is_edited=message.is_edited,
                    edit_history=MessageService.to_response(message).edit_history,
                )
                await DeliveryService.deliver(
                    session, message.alliance_id, message.channel_id, 'message_edited', response.model_dump(mode='json')
                )
        except DomainException as e:
            logger.info(f"edit_message rejected for user {user_id}: {e.message}")
            await self._emit_error(sid, e.message)
        except Exception:
            logger.exception(f"Error in edit_message for user {user_id}")
            await self._emit_error(sid, 'Failed to edit message')

    async def on_delete_message(self, sid, data):
        delete_dto = await self._validate(sid, DeleteMessageEvent, data)
        if delete_dto is None:
            return

        user_id = self._current_user_id(sid)
        if not user_id:
            await self._emit_error(sid, 'Not authenticated. Please reconnect.')
            return

        try:
            async for session in get_db_session():
                message = await MessageService.delete_message(
                    session=session,
                    message_id=delete_dto.message_id,
                    requester_id=user_id,
                )
                response = MessageDeletedResponse(
                    message_id=message.id,
                    channel_id=message.channel_id,
                    deleted_by=user_id,
                )
                await DeliveryService.deliver(
                    session, message.alliance_id, message.channel_id, 'message_deleted', response.model_dump(mode='json')
                )
        except DomainException as e:
            logger.info(f"delete_message rejected for user {user_id}: {e.message}")
            await self._emit_error(sid, e.message)
        except Exception:
            logger.exception(f"Error in delete_message for user {user_id}")
            await self._emit_error(sid, 'Failed to delete message')

    def _in_alliance_room(self, sid, alliance_id: int) -> bool:
        return DeliveryService.alliance_room(alliance_id) in self.rooms(sid)

    async def on_typing_start(self, sid, data):
        """Tell the rest of the alliance that this user is typing"""
        typing_dto = await self._validate(sid, TypingEvent, data)
        if typing_dto is None:
            return

        user_id = self._current_user_id(sid)
        if not user_id or not self._in_alliance_room(sid, typing_dto.alliance_id):
            return

        response = UserTypingResponse(
            user_id=user_id,
            nickname=registry.get_nickname(user_id),
            channel=typing_dto.channel,
        )
        await DeliveryService.broadcast_to_alliance(
            typing_dto.alliance_id, 'user_typing', response.model_dump(mode='json'), skip_sid=sid
        )

    async def on_typing_stop(self, sid, data):
        typing_dto = await self._validate(sid, TypingEvent, data)
        if typing_dto is None:
            return

        user_id = self._current_user_id(sid)
        if not user_id or not self._in_alliance_room(sid, typing_dto.alliance_id):
            return

        response = UserStopTypingResponse(user_id=user_id, channel=typing_dto.channel)
        await DeliveryService.broadcast_to_alliance(
            typing_dto.alliance_id, 'user_stop_typing', response.model_dump(mode='json'), skip_sid=sid
        )


# Register namespace
sio.register_namespace(AllianceNamespace(NAMESPACE))
