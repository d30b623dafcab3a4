# app/models/enums.py

from enum import Enum
from typing import Iterable, Optional


class AllianceRole(str, Enum):
    """Role a user holds inside one alliance"""
    LEADER = "leader"
    OFFICER = "officer"
    MEMBER = "member"


class ChannelType(str, Enum):
    ANNOUNCEMENTS = "announcements"
    GENERAL = "general"
    WAR = "war"
    EVENTS = "events"
    MEDIA = "media"
    PRIVATE = "private"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class AccessIntent(str, Enum):
    READ = "read"
    WRITE = "write"


class Language(str, Enum):
    """Languages a message can be written in or translated into"""
    TR = "tr"
    EN = "en"
    ES = "es"
    DE = "de"
    FR = "fr"
    RU = "ru"
    AR = "ar"
    ZH = "zh"
    JA = "ja"
    KO = "ko"


LANGUAGE_NAMES: dict[Language, str] = {
    Language.TR: "Türkçe",
    Language.EN: "English",
    Language.ES: "Español",
    Language.DE: "Deutsch",
    Language.FR: "Français",
    Language.RU: "Русский",
    Language.AR: "العربية",
    Language.ZH: "中文",
    Language.JA: "日本語",
    Language.KO: "한국어",
}

ALL_ROLES: list[str] = [role.value for role in AllianceRole]
PRIVILEGED_ROLES: frozenset[AllianceRole] = frozenset({AllianceRole.LEADER, AllianceRole.OFFICER})


def role_permits(role: AllianceRole | str, permission_set: Optional[Iterable[str]]) -> bool:
    """Whether `role` is listed in a channel permission set.

    A missing permission set grants nothing.
    """
    if not permission_set:
        return False
    return AllianceRole(role).value in {str(getattr(value, "value", value)) for value in permission_set}
