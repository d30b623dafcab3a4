# app/services/alliance_service.py

import asyncio
import re
import secrets
import string
from collections import Counter
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from exceptions.domain_exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InternalServerException,
    NotFoundException,
    NotMemberException,
    ValidationException,
)
from infrastructure.postgres_connection import utcnow
from models.alliance import Alliance, AllianceMember
from models.channel import AllianceChannel
from models.enums import ALL_ROLES, PRIVILEGED_ROLES, AllianceRole, ChannelType
from models.registered_user import RegisteredUser
from schemas.alliance_schema import (
    AllianceDetailResponse,
    AllianceMemberResponse,
    AllianceStatsResponse,
    AllianceSummaryResponse,
)
from schemas.channel_schema import ChannelResponse
import logging

logger = logging.getLogger(__name__)


class AllianceService:
    """Alliance directory: membership, roles and alliance administration"""

    CODE_ALPHABET = string.ascii_uppercase + string.digits
    MAX_CODE_ATTEMPTS = 10

    DEFAULT_CHANNELS = [
        {
            "name": "Announcements",
            "type": ChannelType.ANNOUNCEMENTS,
            "description": "Official alliance announcements",
            "can_write": [AllianceRole.LEADER.value, AllianceRole.OFFICER.value],
        },
        {
            "name": "General Chat",
            "type": ChannelType.GENERAL,
            "description": "General conversation",
            "can_write": ALL_ROLES,
        },
        {
            "name": "War & Strategy",
            "type": ChannelType.WAR,
            "description": "War planning and strategy",
            "can_write": ALL_ROLES,
        },
        {
            "name": "Events",
            "type": ChannelType.EVENTS,
            "description": "Alliance events and activities",
            "can_write": [AllianceRole.LEADER.value, AllianceRole.OFFICER.value],
        },
        {
            "name": "Media",
            "type": ChannelType.MEDIA,
            "description": "Screenshots and videos",
            "can_write": ALL_ROLES,
        },
    ]

    # Per-alliance mutation locks. Members, channels and authorizations of one
    # alliance are only changed while holding its lock.
    _locks: Dict[int, asyncio.Lock] = {}

    @classmethod
    def lock_for(cls, alliance_id: int) -> asyncio.Lock:
        lock = cls._locks.get(alliance_id)
        if lock is None:
            lock = cls._locks.setdefault(alliance_id, asyncio.Lock())
        return lock

    # ------------------------------------------------------------------ lookups

    @staticmethod
    async def get_alliance(session: AsyncSession, alliance_id: int) -> Alliance:
        """
        Load an alliance with members, channels and authorizations.

        Always re-reads committed state (populate_existing), so callers see
        membership and authorization changes made by other sessions.

        Raises:
            NotFoundException: If the alliance does not exist
        """
        result = await session.execute(
            select(Alliance)
            .where(Alliance.id == alliance_id)
            .execution_options(populate_existing=True)
        )
        alliance = result.scalar_one_or_none()
        if alliance is None:
            raise NotFoundException(
                message="Alliance not found",
                details={"alliance_id": alliance_id}
            )
        return alliance

    @staticmethod
    async def get_alliance_ids_for_user(session: AsyncSession, user_id: int) -> List[int]:
        result = await session.execute(
            select(AllianceMember.alliance_id).where(AllianceMember.user_id == user_id)
        )
        return list(result.scalars().all())

    @staticmethod
    def get_member(alliance: Alliance, user_id: int) -> Optional[AllianceMember]:
        return next((m for m in alliance.members if m.user_id == user_id), None)

    @classmethod
    def require_member(cls, alliance: Alliance, user_id: int) -> AllianceMember:
        """
        Raises:
            NotMemberException: If the user is not in the alliance
        """
        member = cls.get_member(alliance, user_id)
        if member is None:
            raise NotMemberException(alliance_id=alliance.id, user_id=user_id)
        return member

    @classmethod
    def require_role(
        cls,
        alliance: Alliance,
        user_id: int,
        roles: Iterable[AllianceRole],
        message: str,
    ) -> AllianceMember:
        member = cls.require_member(alliance, user_id)
        if AllianceRole(member.role) not in set(roles):
            raise ForbiddenException(
                message=message,
                details={"alliance_id": alliance.id, "role": member.role}
            )
        return member

    # ------------------------------------------------------------------ creation

    @classmethod
    def _random_code(cls, length: int) -> str:
        return ''.join(secrets.choice(cls.CODE_ALPHABET) for _ in range(length))

    @classmethod
    async def _generate_invite_code(cls, session: AsyncSession) -> str:
        for _ in range(cls.MAX_CODE_ATTEMPTS):
            code = cls._random_code(settings.INVITE_CODE_LENGTH)
            result = await session.execute(select(Alliance.id).where(Alliance.invite_code == code))
            if result.scalar_one_or_none() is None:
                return code
        raise InternalServerException(message="Could not generate a unique invite code")

    @classmethod
    async def _derive_tag(cls, session: AsyncSession, server_name: str) -> str:
        """Tag for a bootstrapped alliance: first 5 alphanumerics of the server name"""
        base = re.sub(r'[^A-Z0-9]', '', server_name.upper())[:5] or "ALLY"
        candidates = [base] + [f"{base[:4]}{i}" for i in range(1, 10)]
        for tag in candidates:
            result = await session.execute(select(Alliance.id).where(Alliance.tag == tag))
            if result.scalar_one_or_none() is None:
                return tag
        return cls._random_code(5)

    @classmethod
    def _default_channels(cls, creator_id: int) -> List[AllianceChannel]:
        return [
            AllianceChannel(
                name=defaults["name"],
                type=defaults["type"].value,
                description=defaults["description"],
                can_read=list(ALL_ROLES),
                can_write=list(defaults["can_write"]),
                is_private=False,
                created_by=creator_id,
                authorized_users=[],
            )
            for defaults in cls.DEFAULT_CHANNELS
        ]

    @classmethod
    async def create_alliance(
        cls,
        session: AsyncSession,
        leader_id: int,
        name: str,
        tag: str,
        server_name: str,
        description: Optional[str] = None,
        game_name: Optional[str] = None,
    ) -> Alliance:
        """
        Create an alliance led by `leader_id`, with the default channel set.

        Raises:
            ConflictException: If the server name or tag is already taken
        """
        tag = tag.strip().upper()
        server_name = server_name.strip()

        existing = await session.execute(select(Alliance).where(Alliance.server_name == server_name))
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(
                message=f"An alliance already exists for server '{server_name}'",
                details={"server_name": server_name}
            )
        existing = await session.execute(select(Alliance).where(Alliance.tag == tag))
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(
                message=f"Alliance tag '{tag}' is already taken",
                details={"tag": tag}
            )

        alliance = Alliance(
            server_name=server_name,
            name=name.strip(),
            tag=tag,
            description=description,
            game_name=game_name,
            leader_id=leader_id,
            invite_code=await cls._generate_invite_code(session),
            members=[AllianceMember(user_id=leader_id, role=AllianceRole.LEADER.value)],
            channels=cls._default_channels(leader_id),
        )
        session.add(alliance)
        await session.commit()
        logger.info(f"Alliance {alliance.id} [{tag}] created for server '{server_name}' by user {leader_id}")

        return await cls.get_alliance(session, alliance.id)

    @classmethod
    async def _add_member(cls, session: AsyncSession, alliance_id: int, user_id: int) -> None:
        async with cls.lock_for(alliance_id):
            session.add(AllianceMember(
                alliance_id=alliance_id,
                user_id=user_id,
                role=AllianceRole.MEMBER.value,
            ))
            await session.commit()
        logger.info(f"User {user_id} joined alliance {alliance_id}")

    @classmethod
    async def bootstrap_or_join(
        cls,
        session: AsyncSession,
        user: RegisteredUser,
        server_name: Optional[str] = None,
    ) -> Tuple[Alliance, AllianceRole]:
        """
        Place a newly registered user in the alliance of their server.

        The first registrant of a server founds its alliance and becomes the
        leader; everyone after joins as a member.

        Returns:
            (alliance, role of the user in it)
        """
        server_name = (server_name or user.alliance_server or "").strip()
        if not server_name:
            raise ValidationException(message="Alliance server is required")
        user_id = user.id

        for attempt in range(2):
            result = await session.execute(select(Alliance.id).where(Alliance.server_name == server_name))
            alliance_id = result.scalar_one_or_none()

            if alliance_id is None:
                try:
                    alliance = await cls.create_alliance(
                        session,
                        leader_id=user_id,
                        name=f"{server_name} Alliance",
                        tag=await cls._derive_tag(session, server_name),
                        server_name=server_name,
                    )
                    return alliance, AllianceRole.LEADER
                except (IntegrityError, ConflictException):
                    # Another registrant founded it concurrently; join instead
                    await session.rollback()
                    if attempt:
                        raise
                    continue

            alliance = await cls.get_alliance(session, alliance_id)
            member = cls.get_member(alliance, user_id)
            if member is not None:
                return alliance, AllianceRole(member.role)

            await cls._add_member(session, alliance_id, user_id)
            return await cls.get_alliance(session, alliance_id), AllianceRole.MEMBER

        raise InternalServerException(message="Could not place user in an alliance")

    @classmethod
    async def join_by_invite_code(cls, session: AsyncSession, invite_code: str, user_id: int) -> Alliance:
        """
        Raises:
            NotFoundException: If no alliance uses the invite code
            BadRequestException: If the user is already a member
        """
        code = (invite_code or "").strip().upper()
        result = await session.execute(select(Alliance.id).where(Alliance.invite_code == code))
        alliance_id = result.scalar_one_or_none()
        if alliance_id is None:
            raise NotFoundException(message="Invalid invite code")

        alliance = await cls.get_alliance(session, alliance_id)
        if cls.get_member(alliance, user_id) is not None:
            raise BadRequestException(
                message="You are already a member of this alliance",
                details={"alliance_id": alliance_id}
            )

        try:
            await cls._add_member(session, alliance_id, user_id)
        except IntegrityError:
            await session.rollback()
            raise BadRequestException(
                message="You are already a member of this alliance",
                details={"alliance_id": alliance_id}
            )
        return await cls.get_alliance(session, alliance_id)

    # ------------------------------------------------------------------ reads

    @staticmethod
    def to_summary(alliance: Alliance, role: AllianceRole | str) -> AllianceSummaryResponse:
        return AllianceSummaryResponse(
            id=alliance.id,
            name=alliance.name,
            tag=alliance.tag,
            server_name=alliance.server_name,
            description=alliance.description,
            game_name=alliance.game_name,
            member_count=len(alliance.members),
            my_role=AllianceRole(role),
            auto_translate=alliance.auto_translate,
        )

    @staticmethod
    def to_member_response(member: AllianceMember) -> AllianceMemberResponse:
        return AllianceMemberResponse(
            user_id=member.user_id,
            nickname=member.user.nickname,
            preferred_language=member.user.preferred_language,
            role=AllianceRole(member.role),
            is_online=member.user.is_online,
            last_seen=member.user.last_seen,
            joined_at=member.joined_at,
        )

    @classmethod
    async def get_user_alliances(cls, session: AsyncSession, user_id: int) -> List[AllianceSummaryResponse]:
        result = await session.execute(
            select(AllianceMember.alliance_id, AllianceMember.role)
            .where(AllianceMember.user_id == user_id)
            .order_by(AllianceMember.joined_at)
        )
        summaries = []
        for alliance_id, role in result.all():
            alliance = await cls.get_alliance(session, alliance_id)
            summaries.append(cls.to_summary(alliance, role))
        return summaries

    @classmethod
    async def get_alliance_detail(cls, session: AsyncSession, alliance_id: int, user_id: int) -> AllianceDetailResponse:
        """Alliance detail for a member; channels are limited to the ones they can read"""
        from services.channel_access_service import ChannelAccessService

        alliance = await cls.get_alliance(session, alliance_id)
        member = cls.require_member(alliance, user_id)
        role = AllianceRole(member.role)

        return AllianceDetailResponse(
            id=alliance.id,
            name=alliance.name,
            tag=alliance.tag,
            server_name=alliance.server_name,
            description=alliance.description,
            game_name=alliance.game_name,
            leader_id=alliance.leader_id,
            invite_code=alliance.invite_code if role in PRIVILEGED_ROLES else None,
            auto_translate=alliance.auto_translate,
            total_messages=alliance.total_messages,
            created_at=alliance.created_at,
            my_role=role,
            members=[cls.to_member_response(m) for m in alliance.members],
            channels=[
                ChannelResponse.model_validate(channel)
                for channel in ChannelAccessService.accessible_channels(alliance, user_id)
            ],
        )

    # ------------------------------------------------------------------ administration

    @classmethod
    async def update_settings(
        cls,
        session: AsyncSession,
        alliance_id: int,
        actor_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        auto_translate: Optional[bool] = None,
    ) -> Alliance:
        """Leader-only update of name, description and auto-translate"""
        async with cls.lock_for(alliance_id):
            alliance = await cls.get_alliance(session, alliance_id)
            cls.require_role(
                alliance, actor_id, [AllianceRole.LEADER],
                "Only the alliance leader can change alliance settings"
            )
            if name is not None:
                alliance.name = name.strip()
            if description is not None:
                alliance.description = description
            if auto_translate is not None:
                alliance.auto_translate = auto_translate
            await session.commit()

        return await cls.get_alliance(session, alliance_id)

    @classmethod
    async def change_member_role(
        cls,
        session: AsyncSession,
        alliance_id: int,
        actor_id: int,
        target_user_id: int,
        new_role: AllianceRole | str,
    ) -> AllianceMember:
        """
        Raises:
            ForbiddenException: If the actor is not the leader
            ValidationException: If the new role is not officer or member
            BadRequestException: If the leader targets themselves
            NotFoundException: If the target is not a member
        """
        try:
            new_role = AllianceRole(new_role)
        except ValueError:
            raise ValidationException(message="Invalid role", details={"role": str(new_role)})
        if new_role not in (AllianceRole.OFFICER, AllianceRole.MEMBER):
            raise ValidationException(
                message="Role must be 'officer' or 'member'",
                details={"role": new_role.value}
            )

        async with cls.lock_for(alliance_id):
            alliance = await cls.get_alliance(session, alliance_id)
            cls.require_role(
                alliance, actor_id, [AllianceRole.LEADER],
                "Only the alliance leader can change member roles"
            )
            if target_user_id == actor_id:
                raise BadRequestException(message="You cannot change your own role")

            target = cls.get_member(alliance, target_user_id)
            if target is None:
                raise NotFoundException(
                    message="Member not found",
                    details={"user_id": target_user_id}
                )

            target.role = new_role.value
            await session.commit()

        logger.info(f"User {target_user_id} is now {new_role.value} in alliance {alliance_id}")
        return target

    @classmethod
    async def remove_member(cls, session: AsyncSession, alliance_id: int, actor_id: int, target_user_id: int) -> None:
        """Leader-only removal; the leader cannot remove themselves"""
        async with cls.lock_for(alliance_id):
            alliance = await cls.get_alliance(session, alliance_id)
            cls.require_role(
                alliance, actor_id, [AllianceRole.LEADER],
                "Only the alliance leader can remove members"
            )
            if target_user_id == actor_id:
                raise BadRequestException(message="You cannot remove yourself from the alliance")

            target = cls.get_member(alliance, target_user_id)
            if target is None:
                raise NotFoundException(
                    message="Member not found",
                    details={"user_id": target_user_id}
                )

            alliance.members.remove(target)
            await session.commit()

        logger.info(f"User {target_user_id} removed from alliance {alliance_id} by {actor_id}")

    @classmethod
    async def get_alliance_stats(cls, session: AsyncSession, alliance_id: int, actor_id: int) -> AllianceStatsResponse:
        alliance = await cls.get_alliance(session, alliance_id)
        cls.require_role(
            alliance, actor_id, PRIVILEGED_ROLES,
            "Only leaders and officers can view alliance statistics"
        )

        now = utcnow()
        users = [m.user for m in alliance.members if m.user is not None]

        def active_since(delta: timedelta) -> int:
            return sum(1 for u in users if u.is_online or (u.last_seen and u.last_seen >= now - delta))

        return AllianceStatsResponse(
            total_members=len(alliance.members),
            online_members=sum(1 for u in users if u.is_online),
            active_today=active_since(timedelta(days=1)),
            active_this_week=active_since(timedelta(days=7)),
            new_this_month=sum(1 for m in alliance.members if m.joined_at >= now - timedelta(days=30)),
            role_distribution=dict(Counter(m.role for m in alliance.members)),
            total_messages=alliance.total_messages,
        )
