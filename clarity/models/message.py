from beanie import Document
from pydantic import Field, model_validator
from typing import List, Optional
from datetime import datetime, timezone
from .participant import MessageType, ParticipantKind


class Message(Document):
    """
    A doubt or clarity posted in a gym's channel, stored in the 'messages' collection.
    A message without a recipient is common to the whole tenant; with one it is private.
    """
    text: str = Field(..., min_length=1, max_length=2000, description="Trimmed message body.")
    tenantId: str = Field(..., description="ID of the gym that owns the message.")
    senderId: str = Field(..., description="ID of the author.")
    senderKind: ParticipantKind = Field(..., description="Collection the author lives in.")
    recipientId: Optional[str] = Field(default=None, description="Recipient of a private message.")
    recipientKind: Optional[ParticipantKind] = Field(default=None, description="Collection the recipient lives in.")
    messageType: MessageType = Field(default=MessageType.DOUBT, description="doubt (question) or clarity (answer).")
    isVisible: bool = Field(default=True, description="Soft hide flag, distinct from deletion.")
    isResolved: bool = Field(default=False, description="Set by an admin once the doubt is answered.")
    parentId: Optional[str] = Field(default=None, description="ID of the message this one replies to.")
    replyIds: List[str] = Field(default_factory=list, description="Best-effort index of direct replies.")
    lastReplyAt: Optional[datetime] = Field(default=None, description="When the latest reply was added.")
    readBy: List[str] = Field(default_factory=list, description="Participants who have read the message.")
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation time.")

    @model_validator(mode="after")
    def recipient_kind_matches_recipient(self):
        if (self.recipientId is None) != (self.recipientKind is None):
            raise ValueError("recipientKind is required if and only if recipientId is set")
        return self

    class Settings:
        name = "messages"
        indexes = [
            "tenantId",
            "parentId",
            [("tenantId", 1), ("createdAt", 1)],
            [("tenantId", 1), ("recipientId", 1)],
        ]
