# app/services/channel_access_service.py

import secrets
import string
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from exceptions.domain_exceptions import (
    DuplicateChannelNameException,
    ForbiddenException,
    InternalServerException,
    InvalidAccessCodeException,
    NotFoundException,
    ValidationException,
)
from models.alliance import Alliance
from models.channel import AllianceChannel, ChannelAuthorization
from models.enums import ALL_ROLES, PRIVILEGED_ROLES, AccessIntent, AllianceRole, ChannelType, role_permits
from schemas.channel_schema import AuthorizedUserResponse, ChannelInfoResponse, ChannelResponse
from services.alliance_service import AllianceService
import logging

logger = logging.getLogger(__name__)


class ChannelAccessService:
    """
    Decides who may read, write and receive each channel.

    Public channels are gated by role. Private channels ignore roles and are
    open only to users who redeemed the channel's access code. The same rules
    back read checks, write checks and delivery targeting.
    """

    ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
    MIN_ACCESS_CODE_LENGTH = 4
    MAX_CODE_ATTEMPTS = 10
    MIN_CHANNEL_NAME_LENGTH = 2
    MAX_CHANNEL_NAME_LENGTH = 50

    @staticmethod
    def find_channel(alliance: Alliance, channel_id: int) -> Optional[AllianceChannel]:
        return next((c for c in alliance.channels if c.id == channel_id), None)

    @classmethod
    def resolve_channel(
        cls,
        alliance: Alliance,
        channel_id: Optional[int] = None,
        channel_type: Optional[ChannelType | str] = None,
    ) -> AllianceChannel:
        """
        Find a channel by id, or the first public channel of a type.

        Raises:
            NotFoundException: If no such channel exists in the alliance
        """
        channel = None
        if channel_id is not None:
            channel = cls.find_channel(alliance, channel_id)
        elif channel_type is not None:
            wanted = ChannelType(channel_type).value
            channel = next(
                (c for c in alliance.channels if c.type == wanted and not c.is_private),
                None
            )

        if channel is None:
            raise NotFoundException(
                message="Channel not found",
                details={"alliance_id": alliance.id, "channel_id": channel_id, "channel": str(channel_type) if channel_type else None}
            )
        return channel

    @staticmethod
    def _authorized_ids(channel: AllianceChannel) -> set[int]:
        return {auth.user_id for auth in channel.authorized_users}

    @classmethod
    def can_access(
        cls,
        alliance: Alliance,
        channel: Optional[AllianceChannel],
        user_id: int,
        intent: AccessIntent | str,
    ) -> bool:
        """
        Whether `user_id` may read or write `channel`.

        Raises:
            NotMemberException: If the user is not a member of the alliance
        """
        member = AllianceService.require_member(alliance, user_id)
        if channel is None or channel.alliance_id != alliance.id:
            return False

        if channel.is_private:
            return user_id in cls._authorized_ids(channel)

        permission_set = channel.can_write if AccessIntent(intent) == AccessIntent.WRITE else channel.can_read
        return role_permits(member.role, permission_set)

    @classmethod
    def require_access(
        cls,
        alliance: Alliance,
        channel: AllianceChannel,
        user_id: int,
        intent: AccessIntent | str,
    ) -> None:
        """
        Raises:
            NotMemberException: If the user is not a member of the alliance
            ForbiddenException: If the user may not perform `intent` on the channel
        """
        if not cls.can_access(alliance, channel, user_id, intent):
            action = "post in" if AccessIntent(intent) == AccessIntent.WRITE else "read"
            raise ForbiddenException(
                message=f"You do not have permission to {action} this channel",
                details={"alliance_id": alliance.id, "channel_id": channel.id if channel else None}
            )

    @classmethod
    def authorized_user_ids(cls, alliance: Alliance, channel: AllianceChannel) -> set[int]:
        """Current members allowed to read `channel`"""
        member_ids = {m.user_id for m in alliance.members}
        if channel.is_private:
            return cls._authorized_ids(channel) & member_ids
        return {
            m.user_id for m in alliance.members
            if role_permits(m.role, channel.can_read)
        }

    @classmethod
    def accessible_channels(cls, alliance: Alliance, user_id: int) -> List[AllianceChannel]:
        return [
            channel for channel in alliance.channels
            if cls.can_access(alliance, channel, user_id, AccessIntent.READ)
        ]

    @classmethod
    async def list_accessible_channels(cls, session: AsyncSession, alliance_id: int, user_id: int) -> List[AllianceChannel]:
        """Public channels the user's role may read plus private channels they unlocked"""
        alliance = await AllianceService.get_alliance(session, alliance_id)
        return cls.accessible_channels(alliance, user_id)

    @staticmethod
    def normalize_access_code(code: Optional[str]) -> str:
        return (code or "").strip().upper()

    @classmethod
    def generate_access_code(cls, existing_codes: Iterable[str]) -> str:
        """Random code that does not collide with `existing_codes`"""
        taken = {code.upper() for code in existing_codes if code}
        for _ in range(cls.MAX_CODE_ATTEMPTS):
            code = ''.join(secrets.choice(cls.ACCESS_CODE_ALPHABET) for _ in range(settings.ACCESS_CODE_LENGTH))
            if code not in taken:
                return code
        raise InternalServerException(message="Could not generate a unique access code")

    @classmethod
    async def create_private_channel(
        cls,
        session: AsyncSession,
        alliance_id: int,
        name: str,
        creator_id: int,
        description: Optional[str] = None,
    ) -> Tuple[AllianceChannel, str]:
        """
        Create a private channel and authorize its creator.

        Returns:
            (channel, access code to share with other members)

        Raises:
            ValidationException: If the name is too short or too long
            NotMemberException: If the creator is not in the alliance
            ForbiddenException: If the creator is not a leader or officer
            DuplicateChannelNameException: If any channel already uses the name
        """
        name = (name or "").strip()
        if not cls.MIN_CHANNEL_NAME_LENGTH <= len(name) <= cls.MAX_CHANNEL_NAME_LENGTH:
            raise ValidationException(
                message=f"Channel name must be between {cls.MIN_CHANNEL_NAME_LENGTH} and {cls.MAX_CHANNEL_NAME_LENGTH} characters",
                details={"name": name}
            )

        async with AllianceService.lock_for(alliance_id):
            alliance = await AllianceService.get_alliance(session, alliance_id)
            AllianceService.require_role(
                alliance, creator_id, PRIVILEGED_ROLES,
                "Only leaders and officers can create private channels"
            )

            if any(channel.name.lower() == name.lower() for channel in alliance.channels):
                raise DuplicateChannelNameException(name)

            access_code = cls.generate_access_code(c.access_code for c in alliance.channels)
            channel = AllianceChannel(
                alliance_id=alliance.id,
                name=name,
                type=ChannelType.PRIVATE.value,
                description=description,
                can_read=list(ALL_ROLES),
                can_write=list(ALL_ROLES),
                is_private=True,
                access_code=access_code,
                created_by=creator_id,
                authorized_users=[ChannelAuthorization(user_id=creator_id, authorized_by=creator_id)],
            )
            session.add(channel)
            await session.commit()
            channel_id = channel.id

        logger.info(f"Private channel {channel_id} '{name}' created in alliance {alliance_id} by user {creator_id}")
        alliance = await AllianceService.get_alliance(session, alliance_id)
        return cls.find_channel(alliance, channel_id), access_code

    @classmethod
    async def redeem_access_code(cls, session: AsyncSession, alliance_id: int, code: str, user_id: int) -> AllianceChannel:
        """
        Unlock the private channel matching `code` for `user_id`.

        Codes are matched case-insensitively after trimming. Redeeming a code
        the user already holds succeeds without adding anything.

        Raises:
            ValidationException: If the code is shorter than 4 characters
            NotMemberException: If the user is not in the alliance
            InvalidAccessCodeException: If no private channel uses the code
        """
        normalized = cls.normalize_access_code(code)
        if len(normalized) < cls.MIN_ACCESS_CODE_LENGTH:
            raise ValidationException(
                message=f"Access code must be at least {cls.MIN_ACCESS_CODE_LENGTH} characters",
            )

        async with AllianceService.lock_for(alliance_id):
            alliance = await AllianceService.get_alliance(session, alliance_id)
            AllianceService.require_member(alliance, user_id)

            channel = next(
                (
                    c for c in alliance.channels
                    if c.is_private and c.access_code and c.access_code.upper() == normalized
                ),
                None
            )
            if channel is None:
                raise InvalidAccessCodeException(details={"alliance_id": alliance_id})

            channel_id = channel.id
            if user_id in cls._authorized_ids(channel):
                logger.info(f"User {user_id} already authorized for channel {channel_id}")
                return channel

            channel.authorized_users.append(ChannelAuthorization(user_id=user_id, authorized_by=user_id))
            try:
                await session.commit()
            except IntegrityError:
                # Same user redeemed concurrently from another session
                await session.rollback()
                logger.info(f"Concurrent redemption of channel {channel_id} by user {user_id}")

        logger.info(f"User {user_id} unlocked private channel {channel_id} in alliance {alliance_id}")
        alliance = await AllianceService.get_alliance(session, alliance_id)
        return cls.find_channel(alliance, channel_id)

    @classmethod
    async def get_channel_info(cls, session: AsyncSession, alliance_id: int, channel_id: int, user_id: int) -> ChannelInfoResponse:
        """
        Channel details including the access code and the authorized users.

        Raises:
            ForbiddenException: Unless the user is a leader, an officer or the channel creator
        """
        alliance = await AllianceService.get_alliance(session, alliance_id)
        member = AllianceService.require_member(alliance, user_id)
        channel = cls.resolve_channel(alliance, channel_id=channel_id)

        if AllianceRole(member.role) not in PRIVILEGED_ROLES and channel.created_by != user_id:
            raise ForbiddenException(
                message="Only leaders, officers and the channel creator can view channel details",
                details={"channel_id": channel_id}
            )

        return ChannelInfoResponse(
            **ChannelResponse.model_validate(channel).model_dump(),
            access_code=channel.access_code,
            authorized_users=[
                AuthorizedUserResponse(
                    user_id=auth.user_id,
                    nickname=auth.user.nickname if auth.user else None,
                    authorized_at=auth.authorized_at,
                    authorized_by=auth.authorized_by,
                )
                for auth in channel.authorized_users
            ],
        )
