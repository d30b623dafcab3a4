"""
Unit tests for UserManager

Tests cover:
- Email uniqueness validation
- Nickname uniqueness validation
- User creation with validation
- User update with validation
- Registration hook placing users into their server's alliance
"""
import pytest
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy.ext.asyncio import AsyncSession
from models.registered_user import RegisteredUser
from models.enums import AllianceRole
from schemas.user_schema import UserCreate, UserUpdate
from services.alliance_service import AllianceService
from services.user_manager import (
    UserManager,
    NicknameAlreadyExists,
    EmailAlreadyExists,
)


@pytest.fixture
def user_manager(db_session: AsyncSession) -> UserManager:
    return UserManager(SQLAlchemyUserDatabase(db_session, RegisteredUser))


def _registration(nickname: str, server: str = "S-142", language: str = "tr") -> UserCreate:
    return UserCreate(
        email=f"{nickname.lower()}@example.com",
        password="strongpassword123",
        nickname=nickname,
        preferred_language=language,
        alliance_server=server,
    )


@pytest.mark.unit
class TestValidateEmailUnique:
    """Test cases for validate_email_unique method"""

    async def test_unused_email(self, user_manager: UserManager):
        await user_manager.validate_email_unique("new_email@example.com")

    async def test_raises_when_exists(self, user_manager: UserManager, leader: RegisteredUser):
        with pytest.raises(EmailAlreadyExists):
            await user_manager.validate_email_unique(leader.email)

    async def test_excluding_own_account(self, user_manager: UserManager, leader: RegisteredUser):
        await user_manager.validate_email_unique(leader.email, exclude_user_id=leader.id)


@pytest.mark.unit
class TestValidateNicknameUnique:
    """Test cases for validate_nickname_unique method"""

    async def test_unused_nickname(self, user_manager: UserManager, leader: RegisteredUser):
        await user_manager.validate_nickname_unique("Brand New")

    async def test_raises_when_exists(self, user_manager: UserManager, leader: RegisteredUser):
        with pytest.raises(NicknameAlreadyExists):
            await user_manager.validate_nickname_unique("Kurt")

    async def test_excluding_own_account(self, user_manager: UserManager, leader: RegisteredUser):
        await user_manager.validate_nickname_unique("Kurt", exclude_user_id=leader.id)


@pytest.mark.unit
class TestCreate:
    """Test cases for registration"""

    async def test_first_registrant_founds_alliance(
        self,
        db_session: AsyncSession,
        user_manager: UserManager,
    ):
        # Act
        user = await user_manager.create(_registration("Warlord"))

        # Assert
        assert user.id is not None
        assert user.preferred_language == "tr"
        assert user.hashed_password != "strongpassword123"
        alliance_ids = await AllianceService.get_alliance_ids_for_user(db_session, user.id)
        assert len(alliance_ids) == 1
        alliance = await AllianceService.get_alliance(db_session, alliance_ids[0])
        assert alliance.leader_id == user.id
        assert AllianceService.get_member(alliance, user.id).role == AllianceRole.LEADER.value

    async def test_second_registrant_joins_as_member(
        self,
        db_session: AsyncSession,
        user_manager: UserManager,
    ):
        # Arrange
        founder = await user_manager.create(_registration("Warlord"))

        # Act
        recruit = await user_manager.create(_registration("Recruit", language="en"))

        # Assert
        founder_alliances = await AllianceService.get_alliance_ids_for_user(db_session, founder.id)
        recruit_alliances = await AllianceService.get_alliance_ids_for_user(db_session, recruit.id)
        assert recruit_alliances == founder_alliances
        alliance = await AllianceService.get_alliance(db_session, recruit_alliances[0])
        assert AllianceService.get_member(alliance, recruit.id).role == AllianceRole.MEMBER.value

    async def test_duplicate_nickname(self, user_manager: UserManager, leader: RegisteredUser):
        with pytest.raises(NicknameAlreadyExists):
            await user_manager.create(_registration("Kurt"))

    async def test_duplicate_email(self, user_manager: UserManager, leader: RegisteredUser):
        registration = _registration("Someone")
        registration.email = leader.email

        with pytest.raises(EmailAlreadyExists):
            await user_manager.create(registration)


@pytest.mark.unit
class TestUpdate:
    """Test cases for profile updates"""

    async def test_change_language(self, user_manager: UserManager, leader: RegisteredUser):
        updated = await user_manager.update(UserUpdate(preferred_language="de"), leader)

        assert updated.preferred_language == "de"

    async def test_keep_own_nickname(self, user_manager: UserManager, leader: RegisteredUser):
        updated = await user_manager.update(UserUpdate(nickname="Kurt"), leader)

        assert updated.nickname == "Kurt"

    async def test_nickname_taken(
        self,
        user_manager: UserManager,
        leader: RegisteredUser,
        member: RegisteredUser,
    ):
        with pytest.raises(NicknameAlreadyExists):
            await user_manager.update(UserUpdate(nickname="Wolf"), leader)
