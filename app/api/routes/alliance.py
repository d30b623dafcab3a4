# app/api/routes/alliance.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from models.registered_user import RegisteredUser
from schemas.alliance_schema import (
    AllianceCreate,
    AllianceSettingsUpdate,
    ChangeRoleRequest,
    AllianceSummaryResponse,
    AllianceDetailResponse,
    JoinAllianceResponse,
    MemberRoleResponse,
    AllianceStatsResponse,
)
from schemas.channel_schema import (
    ChannelResponse,
    ChannelListResponse,
    ChannelInfoResponse,
    CreatePrivateChannelRequest,
    CreatePrivateChannelResponse,
    RedeemAccessCodeRequest,
    RedeemAccessCodeResponse,
)
from models.enums import AllianceRole
from services.alliance_service import AllianceService
from services.channel_access_service import ChannelAccessService
from services.delivery_service import DeliveryService
from infrastructure.postgres_connection import get_db_session
from api.routes.auth import current_active_user


# Create router
alliance_router = APIRouter(prefix="/alliances", tags=["Alliances"])


@alliance_router.post("", response_model=AllianceDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_alliance(
    alliance_data: AllianceCreate,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create an alliance for a game server. The creator becomes its leader.

    - **name**: Alliance name
    - **tag**: Short tag (letters and digits, stored uppercase)
    - **server_name**: Game server; one alliance per server
    """
    user_id = current_user.id
    alliance = await AllianceService.create_alliance(
        session=session,
        leader_id=user_id,
        name=alliance_data.name,
        tag=alliance_data.tag,
        server_name=alliance_data.server_name,
        description=alliance_data.description,
        game_name=alliance_data.game_name,
    )
    await DeliveryService.add_user_to_alliance_room(user_id, alliance.id)
    return await AllianceService.get_alliance_detail(session, alliance.id, user_id)


@alliance_router.post("/join/{invite_code}", response_model=JoinAllianceResponse)
async def join_alliance(
    invite_code: str,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Join an alliance with its invite code"""
    user_id = current_user.id
    alliance = await AllianceService.join_by_invite_code(session, invite_code, user_id)
    await DeliveryService.add_user_to_alliance_room(user_id, alliance.id)

    return JoinAllianceResponse(
        alliance=AllianceService.to_summary(alliance, AllianceRole.MEMBER),
        message=f"Joined alliance {alliance.name} [{alliance.tag}]",
    )


@alliance_router.get("/mine", response_model=list[AllianceSummaryResponse])
async def get_my_alliances(
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await AllianceService.get_user_alliances(session, current_user.id)


@alliance_router.get("/{alliance_id}", response_model=AllianceDetailResponse)
async def get_alliance(
    alliance_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Alliance details with members and the channels visible to the caller.

    The invite code is included only for leaders and officers.
    """
    return await AllianceService.get_alliance_detail(session, alliance_id, current_user.id)


# ---------------------------------------------------------------------- admin

@alliance_router.put("/{alliance_id}/admin/settings", response_model=AllianceDetailResponse)
async def update_alliance_settings(
    alliance_id: int,
    settings_data: AllianceSettingsUpdate,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Leader only. Omitted fields are left unchanged."""
    user_id = current_user.id
    await AllianceService.update_settings(
        session=session,
        alliance_id=alliance_id,
        actor_id=user_id,
        name=settings_data.name,
        description=settings_data.description,
        auto_translate=settings_data.auto_translate,
    )
    return await AllianceService.get_alliance_detail(session, alliance_id, user_id)


@alliance_router.put("/{alliance_id}/admin/members/{user_id}/role", response_model=MemberRoleResponse)
async def change_member_role(
    alliance_id: int,
    user_id: int,
    role_data: ChangeRoleRequest,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Promote or demote a member (leader only).

    - **role**: `officer` or `member`
    """
    member = await AllianceService.change_member_role(
        session=session,
        alliance_id=alliance_id,
        actor_id=current_user.id,
        target_user_id=user_id,
        new_role=role_data.role,
    )
    return MemberRoleResponse(
        user_id=member.user_id,
        role=member.role,
        message=f"Role updated to {member.role}",
    )


@alliance_router.delete("/{alliance_id}/admin/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    alliance_id: int,
    user_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a member from the alliance (leader only)"""
    await AllianceService.remove_member(session, alliance_id, current_user.id, user_id)
    await DeliveryService.remove_user_from_alliance_room(user_id, alliance_id)
    return None


@alliance_router.get("/{alliance_id}/admin/stats", response_model=AllianceStatsResponse)
async def get_alliance_stats(
    alliance_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Activity statistics (leaders and officers)"""
    return await AllianceService.get_alliance_stats(session, alliance_id, current_user.id)


# ---------------------------------------------------------------------- channels

@alliance_router.get("/{alliance_id}/channels", response_model=ChannelListResponse)
async def list_channels(
    alliance_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Public channels the caller's role can read, plus private channels they have unlocked"""
    channels = await ChannelAccessService.list_accessible_channels(session, alliance_id, current_user.id)
    return ChannelListResponse(channels=[ChannelResponse.model_validate(c) for c in channels])


@alliance_router.post(
    "/{alliance_id}/channels/private",
    response_model=CreatePrivateChannelResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_private_channel(
    alliance_id: int,
    channel_data: CreatePrivateChannelRequest,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a private channel (leaders and officers).

    Returns the access code other members redeem to unlock the channel.
    """
    channel, access_code = await ChannelAccessService.create_private_channel(
        session=session,
        alliance_id=alliance_id,
        name=channel_data.name,
        creator_id=current_user.id,
        description=channel_data.description,
    )
    return CreatePrivateChannelResponse(
        channel=ChannelResponse.model_validate(channel),
        access_code=access_code,
    )


@alliance_router.post("/{alliance_id}/channels/join", response_model=RedeemAccessCodeResponse)
async def redeem_access_code(
    alliance_id: int,
    redeem_data: RedeemAccessCodeRequest,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Unlock a private channel with its access code"""
    channel = await ChannelAccessService.redeem_access_code(
        session, alliance_id, redeem_data.access_code, current_user.id
    )
    return RedeemAccessCodeResponse(
        channel=ChannelResponse.model_validate(channel),
        message=f"Access granted to channel {channel.name}",
    )


@alliance_router.get("/{alliance_id}/channels/{channel_id}/info", response_model=ChannelInfoResponse)
async def get_channel_info(
    alliance_id: int,
    channel_id: int,
    current_user: RegisteredUser = Depends(current_active_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await ChannelAccessService.get_channel_info(session, alliance_id, channel_id, current_user.id)
