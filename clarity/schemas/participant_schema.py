from pydantic import BaseModel
from typing import Optional


class ParticipantPublic(BaseModel):
    """Minimal public projection of an admin or member."""
    id: str
    name: str


class Identity(BaseModel):
    """Who a realtime connection belongs to."""
    userId: str
    role: str
    name: str
    tenantId: Optional[str] = None

    def presence_entry(self) -> dict:
        return {"userId": self.userId, "role": self.role, "name": self.name}
