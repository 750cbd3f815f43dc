from datetime import datetime
from typing import Any, Optional
from ..schemas.message_schema import MessagePublic
from ..schemas.participant_schema import ParticipantPublic
from ..models.message import Message


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def map_message_to_public(
    msg: Message,
    sender: Optional[ParticipantPublic],
    recipient: Optional[ParticipantPublic] = None,
    viewer_id: Optional[str] = None,
) -> MessagePublic:
    """Build the enriched view of a message as seen by `viewer_id`."""
    return MessagePublic(
        id=str(msg.id),
        text=msg.text,
        tenantId=msg.tenantId,
        senderId=msg.senderId,
        sender=sender,
        senderKind=_enum_value(msg.senderKind),
        recipient=recipient,
        recipientId=msg.recipientId,
        recipientKind=_enum_value(msg.recipientKind),
        messageType=_enum_value(msg.messageType),
        isVisible=msg.isVisible,
        isResolved=msg.isResolved,
        parentId=msg.parentId,
        replyIds=list(msg.replyIds),
        lastReplyAt=msg.lastReplyAt,
        readBy=list(msg.readBy),
        isRead=viewer_id is not None and viewer_id in msg.readBy,
        createdAt=msg.createdAt
    )


def serialize_for_json(obj: Any) -> Any:
    """Convert datetimes to ISO strings so a payload can be sent as JSON."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: serialize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [serialize_for_json(v) for v in obj]
    return obj


def map_message_to_public_dict(public: MessagePublic) -> dict:
    """JSON-ready dict of an enriched message, for broadcasting."""
    return serialize_for_json(public.model_dump())
