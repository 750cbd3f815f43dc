from .message_schema import (
    MessageCreate,
    MarkChatReadRequest,
    MessagePublic,
    MessageStats,
    PrivateNotification,
    UnreadCounts
)
from .participant_schema import ParticipantPublic, Identity
