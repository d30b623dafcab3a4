# app/models/channel.py

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from infrastructure.postgres_connection import Base, utcnow


class AllianceChannel(Base):
    """Channel owned by an alliance; private channels are unlocked with an access code"""
    __tablename__ = "alliance_channels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    alliance_id = Column(Integer, ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(String(200), nullable=True)
    can_read = Column(JSON, nullable=False, default=list)
    can_write = Column(JSON, nullable=False, default=list)
    is_private = Column(Boolean, nullable=False, default=False)
    access_code = Column(String(16), nullable=True)
    created_by = Column(Integer, ForeignKey("registered_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    alliance = relationship("Alliance", back_populates="channels")
    authorized_users = relationship(
        "ChannelAuthorization",
        back_populates="channel",
        cascade="all, delete-orphan",
        order_by="ChannelAuthorization.authorized_at",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<AllianceChannel(id={self.id}, alliance_id={self.alliance_id}, name='{self.name}', private={self.is_private})>"


class ChannelAuthorization(Base):
    """A user unlocked a private channel (never removed)"""
    __tablename__ = "channel_authorizations"
    __table_args__ = (
        UniqueConstraint("channel_id", "user_id", name="uq_channel_authorizations_channel_user"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    channel_id = Column(Integer, ForeignKey("alliance_channels.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("registered_users.id", ondelete="CASCADE"), nullable=False, index=True)
    authorized_at = Column(DateTime, default=utcnow, nullable=False)
    authorized_by = Column(Integer, ForeignKey("registered_users.id", ondelete="SET NULL"), nullable=True)

    channel = relationship("AllianceChannel", back_populates="authorized_users")
    user = relationship("RegisteredUser", foreign_keys=[user_id], lazy="selectin")
