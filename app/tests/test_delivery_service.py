"""
Unit tests for DeliveryService

Tests cover:
- Public channel delivery through the alliance room
- Private channel isolation (only authorized members' connections)
- Authorization read at delivery time
- Failure isolation between recipients
- Presence updates on connect/disconnect
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from models.alliance import Alliance
from models.registered_user import RegisteredUser
from models.enums import ChannelType
from services.alliance_service import AllianceService
from services.channel_access_service import ChannelAccessService
from services.delivery_service import DeliveryService
from test_helpers import channel_of_type


async def _connect(db_session, connection_registry, sid: str, user: RegisteredUser):
    first = connection_registry.register(sid, user.id, user.nickname)
    await DeliveryService.user_connected(db_session, sid, user.id, first)


@pytest.fixture
async def online_alliance(
    db_session: AsyncSession,
    alliance: Alliance,
    leader: RegisteredUser,
    officer: RegisteredUser,
    member: RegisteredUser,
    fake_sio,
    connection_registry,
) -> Alliance:
    """Leader and member with one connection each, officer with two"""
    await _connect(db_session, connection_registry, "sid-m1", leader)
    await _connect(db_session, connection_registry, "sid-m2", officer)
    await _connect(db_session, connection_registry, "sid-m2b", officer)
    await _connect(db_session, connection_registry, "sid-m3", member)
    fake_sio.emitted.clear()
    return alliance


@pytest.mark.unit
class TestDeliver:
    """Test cases for DeliveryService.deliver"""

    async def test_public_channel_goes_to_alliance_room(
        self,
        db_session: AsyncSession,
        online_alliance: Alliance,
        fake_sio,
    ):
        # Arrange
        general = channel_of_type(online_alliance, ChannelType.GENERAL.value)

        # Act
        delivered = await DeliveryService.deliver(
            db_session, online_alliance.id, general.id, "new_message", {"text": "hi"}
        )

        # Assert
        assert delivered == 1
        assert fake_sio.emitted[0]["room"] == DeliveryService.alliance_room(online_alliance.id)
        assert fake_sio.emitted[0]["namespace"] == "/alliance"
        assert sorted(fake_sio.recipients("new_message")) == ["sid-m1", "sid-m2", "sid-m2b", "sid-m3"]

    async def test_private_channel_reaches_only_authorized_connections(
        self,
        db_session: AsyncSession,
        online_alliance: Alliance,
        leader: RegisteredUser,
        officer: RegisteredUser,
        fake_sio,
    ):
        # Arrange
        channel, code = await ChannelAccessService.create_private_channel(
            db_session, online_alliance.id, "council", leader.id
        )
        await ChannelAccessService.redeem_access_code(db_session, online_alliance.id, code, officer.id)

        # Act
        delivered = await DeliveryService.deliver(
            db_session, online_alliance.id, channel.id, "new_message", {"text": "secret"}
        )

        # Assert
        assert delivered == 3
        recipients = fake_sio.recipients("new_message")
        assert sorted(recipients) == ["sid-m1", "sid-m2", "sid-m2b"]
        assert "sid-m3" not in recipients
        assert all(emit["room"] != DeliveryService.alliance_room(online_alliance.id) for emit in fake_sio.emitted)

    async def test_redemption_applies_to_next_delivery(
        self,
        db_session: AsyncSession,
        session_factory,
        online_alliance: Alliance,
        leader: RegisteredUser,
        member: RegisteredUser,
        fake_sio,
    ):
        """A code redeemed from another session is honoured without reconnecting"""
        # Arrange
        channel, code = await ChannelAccessService.create_private_channel(
            db_session, online_alliance.id, "council", leader.id
        )
        await DeliveryService.deliver(db_session, online_alliance.id, channel.id, "new_message", {"n": 1})

        # Act
        async with session_factory() as other_session:
            await ChannelAccessService.redeem_access_code(other_session, online_alliance.id, code, member.id)
        await DeliveryService.deliver(db_session, online_alliance.id, channel.id, "new_message", {"n": 2})

        # Assert
        second_emits = [e["room"] for e in fake_sio.emitted if e["data"] == {"n": 2}]
        assert sorted(second_emits) == ["sid-m1", "sid-m3"]

    async def test_removed_member_stops_receiving_private_channel(
        self,
        db_session: AsyncSession,
        online_alliance: Alliance,
        leader: RegisteredUser,
        member: RegisteredUser,
        fake_sio,
    ):
        channel, code = await ChannelAccessService.create_private_channel(
            db_session, online_alliance.id, "council", leader.id
        )
        await ChannelAccessService.redeem_access_code(db_session, online_alliance.id, code, member.id)
        await AllianceService.remove_member(db_session, online_alliance.id, leader.id, member.id)

        await DeliveryService.deliver(db_session, online_alliance.id, channel.id, "new_message", {"text": "x"})

        assert fake_sio.recipients("new_message") == ["sid-m1"]

    async def test_failing_recipient_does_not_block_others(
        self,
        db_session: AsyncSession,
        online_alliance: Alliance,
        leader: RegisteredUser,
        officer: RegisteredUser,
        fake_sio,
    ):
        # Arrange
        channel, code = await ChannelAccessService.create_private_channel(
            db_session, online_alliance.id, "council", leader.id
        )
        await ChannelAccessService.redeem_access_code(db_session, online_alliance.id, code, officer.id)
        record_emit = fake_sio.emit

        async def flaky_emit(event, data=None, room=None, skip_sid=None, namespace=None):
            if room == "sid-m1":
                raise ConnectionError("socket closed")
            await record_emit(event, data, room=room, skip_sid=skip_sid, namespace=namespace)

        fake_sio.emit = flaky_emit

        # Act
        delivered = await DeliveryService.deliver(
            db_session, online_alliance.id, channel.id, "new_message", {"text": "x"}
        )

        # Assert
        assert delivered == 2
        assert sorted(fake_sio.recipients("new_message")) == ["sid-m2", "sid-m2b"]

    async def test_missing_channel_is_dropped(
        self,
        db_session: AsyncSession,
        online_alliance: Alliance,
        fake_sio,
    ):
        delivered = await DeliveryService.deliver(db_session, online_alliance.id, 99999, "new_message", {})

        assert delivered == 0
        assert fake_sio.emitted == []


@pytest.mark.unit
class TestPresence:
    """Test cases for connect/disconnect presence handling"""

    async def test_first_connection_marks_online_and_broadcasts(
        self,
        db_session: AsyncSession,
        alliance: Alliance,
        member: RegisteredUser,
        fake_sio,
        connection_registry,
    ):
        # Act
        await _connect(db_session, connection_registry, "sid-m3", member)

        # Assert
        assert member.is_online is True
        assert "sid-m3" in fake_sio.rooms[DeliveryService.alliance_room(alliance.id)]
        online_events = [e for e in fake_sio.emitted if e["event"] == "user_online"]
        assert len(online_events) == 1
        assert online_events[0]["skip_sid"] == "sid-m3"
        assert online_events[0]["data"]["user_id"] == member.id
        assert online_events[0]["data"]["nickname"] == "Wolf"

    async def test_second_connection_does_not_broadcast(
        self,
        db_session: AsyncSession,
        alliance: Alliance,
        member: RegisteredUser,
        fake_sio,
        connection_registry,
    ):
        await _connect(db_session, connection_registry, "sid-a", member)
        await _connect(db_session, connection_registry, "sid-b", member)

        assert len(fake_sio.payloads("user_online")) == 1
        assert fake_sio.rooms[DeliveryService.alliance_room(alliance.id)] == {"sid-a", "sid-b"}

    async def test_last_disconnect_marks_offline(
        self,
        db_session: AsyncSession,
        alliance: Alliance,
        member: RegisteredUser,
        fake_sio,
        connection_registry,
    ):
        # Arrange
        await _connect(db_session, connection_registry, "sid-a", member)
        await _connect(db_session, connection_registry, "sid-b", member)

        # Act
        _, was_last = connection_registry.unregister("sid-a")
        await DeliveryService.user_disconnected(db_session, member.id, was_last)
        still_online = member.is_online
        _, was_last = connection_registry.unregister("sid-b")
        await DeliveryService.user_disconnected(db_session, member.id, was_last)

        # Assert
        assert still_online is True
        assert member.is_online is False
        offline = fake_sio.payloads("user_offline")
        assert len(offline) == 1
        assert offline[0]["is_online"] is False

    async def test_reconnect_before_disconnect_handled_stays_online(
        self,
        db_session: AsyncSession,
        alliance: Alliance,
        member: RegisteredUser,
        fake_sio,
        connection_registry,
    ):
        # Arrange
        await _connect(db_session, connection_registry, "sid-a", member)
        _, was_last = connection_registry.unregister("sid-a")
        await _connect(db_session, connection_registry, "sid-b", member)

        # Act
        await DeliveryService.user_disconnected(db_session, member.id, was_last)

        # Assert
        assert was_last is True
        assert member.is_online is True
        assert fake_sio.payloads("user_offline") == []

    async def test_joining_alliance_subscribes_live_connections(
        self,
        db_session: AsyncSession,
        alliance: Alliance,
        outsider: RegisteredUser,
        fake_sio,
        connection_registry,
    ):
        # Arrange
        await _connect(db_session, connection_registry, "sid-x", outsider)
        room = DeliveryService.alliance_room(alliance.id)
        assert "sid-x" not in fake_sio.rooms.get(room, set())

        # Act
        await DeliveryService.add_user_to_alliance_room(outsider.id, alliance.id)

        # Assert
        assert "sid-x" in fake_sio.rooms[room]

        await DeliveryService.remove_user_from_alliance_room(outsider.id, alliance.id)
        assert "sid-x" not in fake_sio.rooms[room]
