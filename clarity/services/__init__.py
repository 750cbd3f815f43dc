from .jwt_service import create_access_token, decode_access_token
from .tenant_filter import scope, scope_document
from .participant_service import ParticipantService
from .message_service import MessageService
from .realtime_service import RealtimeService

__all__ = [
    "create_access_token",
    "decode_access_token",
    "scope",
    "scope_document",
    "ParticipantService",
    "MessageService",
    "RealtimeService"
]
