# app/models/alliance.py

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from infrastructure.postgres_connection import Base, utcnow
from models.enums import AllianceRole


class Alliance(Base):
    """Alliance (tenant) owning its members and channels"""
    __tablename__ = "alliances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    server_name = Column(String(30), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=False)
    tag = Column(String(5), nullable=False, unique=True)
    description = Column(String(500), nullable=True)
    game_name = Column(String(50), nullable=True)
    leader_id = Column(Integer, ForeignKey("registered_users.id"), nullable=False)
    invite_code = Column(String(16), nullable=False, unique=True, index=True)
    is_private = Column(Boolean, nullable=False, default=False)
    auto_translate = Column(Boolean, nullable=False, default=True)
    total_messages = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    members = relationship(
        "AllianceMember",
        back_populates="alliance",
        cascade="all, delete-orphan",
        order_by="AllianceMember.joined_at",
        lazy="selectin",
    )
    channels = relationship(
        "AllianceChannel",
        back_populates="alliance",
        cascade="all, delete-orphan",
        order_by="AllianceChannel.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Alliance(id={self.id}, tag='{self.tag}', server_name='{self.server_name}')>"


class AllianceMember(Base):
    """Membership of a user in an alliance with a role"""
    __tablename__ = "alliance_members"
    __table_args__ = (
        UniqueConstraint("alliance_id", "user_id", name="uq_alliance_members_alliance_user"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    alliance_id = Column(Integer, ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("registered_users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=AllianceRole.MEMBER.value)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    alliance = relationship("Alliance", back_populates="members")
    user = relationship("RegisteredUser", lazy="selectin")

    def __repr__(self):
        return f"<AllianceMember(alliance_id={self.alliance_id}, user_id={self.user_id}, role='{self.role}')>"
