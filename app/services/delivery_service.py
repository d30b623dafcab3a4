# app/services/delivery_service.py

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.postgres_connection import utcnow
from infrastructure.socketio_manager import registry, sio
from models.registered_user import RegisteredUser
from schemas.message_schema import PresenceResponse
from services.alliance_service import AllianceService
from services.channel_access_service import ChannelAccessService

logger = logging.getLogger(__name__)

NAMESPACE = '/alliance'


class DeliveryService:
    """
    Routes events to sockets.

    Every connection joins one broadcast room per alliance of its user.
    Public channel events go to that room; private channel events bypass it
    and go only to the connections of authorized users, looked up at the
    moment of delivery.
    """

    @staticmethod
    def alliance_room(alliance_id: int) -> str:
        return f"alliance_{alliance_id}"

    @classmethod
    async def _emit(cls, event: str, data: dict, room: str, skip_sid: Optional[str] = None) -> bool:
        """Fire-and-forget emit; a failing recipient never fails the caller"""
        try:
            await sio.emit(event, data, room=room, skip_sid=skip_sid, namespace=NAMESPACE)
            return True
        except Exception as e:
            logger.error(f"Error emitting '{event}' to {room}: {e}")
            return False

    @classmethod
    async def deliver(
        cls,
        session: AsyncSession,
        alliance_id: int,
        channel_id: int,
        event: str,
        payload: dict,
    ) -> int:
        """
        Deliver a channel event to everyone entitled to read the channel.

        Channel authorizations are re-read here, not taken from the caller, so
        a user who redeemed a code a moment ago already receives the event.

        Returns:
            Number of emits performed
        """
        alliance = await AllianceService.get_alliance(session, alliance_id)
        channel = ChannelAccessService.find_channel(alliance, channel_id)
        if channel is None:
            logger.warning(f"Dropping '{event}' for missing channel {channel_id} in alliance {alliance_id}")
            return 0

        if not channel.is_private:
            delivered = int(await cls._emit(event, payload, room=cls.alliance_room(alliance_id)))
            logger.info(f"Delivered '{event}' to room {cls.alliance_room(alliance_id)}")
            return delivered

        delivered = 0
        recipients = ChannelAccessService.authorized_user_ids(alliance, channel)
        for user_id in sorted(recipients):
            for sid in registry.connections_for(user_id):
                if await cls._emit(event, payload, room=sid):
                    delivered += 1
        logger.info(f"Delivered '{event}' for private channel {channel_id} to {delivered} connection(s) of {len(recipients)} user(s)")
        return delivered

    @classmethod
    async def broadcast_to_alliance(
        cls,
        alliance_id: int,
        event: str,
        payload: dict,
        skip_sid: Optional[str] = None,
    ) -> None:
        await cls._emit(event, payload, room=cls.alliance_room(alliance_id), skip_sid=skip_sid)

    @classmethod
    async def join_alliance_rooms(cls, sid: str, alliance_ids: Iterable[int]) -> None:
        for alliance_id in alliance_ids:
            await sio.enter_room(sid, cls.alliance_room(alliance_id), namespace=NAMESPACE)

    @classmethod
    async def add_user_to_alliance_room(cls, user_id: int, alliance_id: int) -> None:
        """Subscribe a user's live connections after they join an alliance"""
        for sid in registry.connections_for(user_id):
            await sio.enter_room(sid, cls.alliance_room(alliance_id), namespace=NAMESPACE)

    @classmethod
    async def remove_user_from_alliance_room(cls, user_id: int, alliance_id: int) -> None:
        for sid in registry.connections_for(user_id):
            await sio.leave_room(sid, cls.alliance_room(alliance_id), namespace=NAMESPACE)

    # ------------------------------------------------------------------ presence

    @staticmethod
    async def set_presence(session: AsyncSession, user_id: int, is_online: bool) -> Optional[RegisteredUser]:
        result = await session.execute(select(RegisteredUser).where(RegisteredUser.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        user.is_online = is_online
        user.last_seen = utcnow()
        await session.commit()
        return user

    @classmethod
    async def user_connected(cls, session: AsyncSession, sid: str, user_id: int, first_connection: bool) -> List[int]:
        """
        Join the connection to its alliance rooms; on the first connection mark
        the user online and tell the alliances.

        Returns:
            Alliance ids the connection joined
        """
        alliance_ids = await AllianceService.get_alliance_ids_for_user(session, user_id)
        await cls.join_alliance_rooms(sid, alliance_ids)

        if first_connection:
            user = await cls.set_presence(session, user_id, True)
            if user is not None:
                payload = PresenceResponse(
                    user_id=user.id,
                    nickname=user.nickname,
                    is_online=True,
                    last_seen=user.last_seen,
                ).model_dump(mode='json')
                for alliance_id in alliance_ids:
                    await cls.broadcast_to_alliance(alliance_id, 'user_online', payload, skip_sid=sid)

        return alliance_ids

    @classmethod
    async def user_disconnected(cls, session: AsyncSession, user_id: int, was_last: bool) -> None:
        """Mark the user offline and record last_seen once their last connection closes"""
        if not was_last:
            return
        if registry.is_user_online(user_id):
            # Reconnected while this disconnect was being handled
            return

        user = await cls.set_presence(session, user_id, False)
        if user is None:
            return

        payload = PresenceResponse(
            user_id=user.id,
            nickname=user.nickname,
            is_online=False,
            last_seen=user.last_seen,
        ).model_dump(mode='json')
        for alliance_id in await AllianceService.get_alliance_ids_for_user(session, user_id):
            await cls.broadcast_to_alliance(alliance_id, 'user_offline', payload)
