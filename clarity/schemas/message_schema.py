from pydantic import BaseModel
from typing import Dict, List, Literal, Optional
from datetime import datetime
from .participant_schema import ParticipantPublic


class MessageCreate(BaseModel):
    # text is checked by the service so that empty and oversized bodies share one error path
    text: Optional[str] = None
    recipientId: Optional[str] = None
    messageType: Optional[Literal["doubt", "clarity"]] = None
    parentId: Optional[str] = None


class MarkChatReadRequest(BaseModel):
    chatUserId: Optional[str] = None


class MessagePublic(BaseModel):
    id: str
    text: str
    tenantId: str
    senderId: str
    sender: Optional[ParticipantPublic]
    senderKind: str
    recipient: Optional[ParticipantPublic] = None
    recipientId: Optional[str] = None
    recipientKind: Optional[str] = None
    messageType: str
    isVisible: bool
    isResolved: bool
    parentId: Optional[str] = None
    replyIds: List[str] = []
    lastReplyAt: Optional[datetime] = None
    readBy: List[str] = []
    isRead: bool = False
    createdAt: datetime

    class Config:
        from_attributes = True
        json_encoders = {
            datetime: lambda dt: dt.isoformat()
        }


class MessageStats(BaseModel):
    total: int
    common: int
    private: int
    doubts: int
    clarities: int
    resolved: int


class PrivateNotification(BaseModel):
    senderIdentity: Optional[ParticipantPublic]
    text: str
    messageType: str
    recipientId: str


UnreadCounts = Dict[str, int]
