from .admin import Admin
from .member import Member
from .message import Message
from .tenant import Tenant
from .participant import ParticipantKind, Role, MessageType
from .database import init_db, DOCUMENT_MODELS
