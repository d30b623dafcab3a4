# app/models/__init__.py

from models.registered_user import RegisteredUser
from models.alliance import Alliance, AllianceMember
from models.channel import AllianceChannel, ChannelAuthorization
from models.message import AllianceMessage, MessageTranslation, MessageEdit

__all__ = [
    "RegisteredUser",
    "Alliance",
    "AllianceMember",
    "AllianceChannel",
    "ChannelAuthorization",
    "AllianceMessage",
    "MessageTranslation",
    "MessageEdit",
]
