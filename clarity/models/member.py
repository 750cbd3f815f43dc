from beanie import Document
from pydantic import Field, EmailStr
from typing import Optional
from datetime import datetime, timezone


class Member(Document):
    """
    A gym member (fighter) in the 'members' collection.
    """
    name: str = Field(..., description="Display name shown in the channel.")
    tenantId: str = Field(..., description="ID of the gym the member trains at.")
    email: Optional[EmailStr] = Field(default=None, description="Contact email.")
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "members"
        indexes = [
            "tenantId",
        ]
