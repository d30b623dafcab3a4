# app/models/message.py

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from infrastructure.postgres_connection import Base, utcnow
from models.enums import MessageType


class AllianceMessage(Base):
    """Message posted in an alliance channel. Never hard-deleted."""
    __tablename__ = "alliance_messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    alliance_id = Column(Integer, ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False, index=True)
    channel_id = Column(Integer, ForeignKey("alliance_channels.id", ondelete="CASCADE"), nullable=False, index=True)
    # Weak reference: removing a user must not remove their messages
    sender_id = Column(Integer, ForeignKey("registered_users.id", ondelete="SET NULL"), nullable=True, index=True)
    original_text = Column(Text, nullable=False)
    original_language = Column(String(5), nullable=False)
    message_type = Column(String(10), nullable=False, default=MessageType.TEXT.value)
    attachments = Column(JSON, nullable=False, default=list)
    reply_to_id = Column(Integer, ForeignKey("alliance_messages.id", ondelete="SET NULL"), nullable=True)

    is_edited = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    is_pinned = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    sender = relationship("RegisteredUser", lazy="selectin")
    translations = relationship(
        "MessageTranslation",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageTranslation.language",
        lazy="selectin",
    )
    edit_history = relationship(
        "MessageEdit",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageEdit.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<AllianceMessage(id={self.id}, channel_id={self.channel_id}, sender_id={self.sender_id}, deleted={self.is_deleted})>"


class MessageTranslation(Base):
    """One translation of a message; at most one per language"""
    __tablename__ = "message_translations"
    __table_args__ = (
        UniqueConstraint("message_id", "language", name="uq_message_translations_message_language"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("alliance_messages.id", ondelete="CASCADE"), nullable=False, index=True)
    language = Column(String(5), nullable=False)
    text = Column(Text, nullable=False)
    translated_at = Column(DateTime, default=utcnow, nullable=False)

    message = relationship("AllianceMessage", back_populates="translations")


class MessageEdit(Base):
    """Previous content of an edited message"""
    __tablename__ = "message_edits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("alliance_messages.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    edited_at = Column(DateTime, default=utcnow, nullable=False)

    message = relationship("AllianceMessage", back_populates="edit_history")
