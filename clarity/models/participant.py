from enum import Enum


class ParticipantKind(str, Enum):
    """Tag identifying which collection a participant id points into."""
    ADMIN = "Admin"
    MEMBER = "Member"


class Role(str, Enum):
    """Role claim carried by the access token."""
    ADMIN = "admin"
    MEMBER = "member"

    @property
    def kind(self) -> ParticipantKind:
        return ParticipantKind.ADMIN if self is Role.ADMIN else ParticipantKind.MEMBER


class MessageType(str, Enum):
    DOUBT = "doubt"
    CLARITY = "clarity"
