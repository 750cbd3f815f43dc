from beanie import Document
from pydantic import Field, EmailStr
from datetime import datetime, timezone


class Admin(Document):
    """
    A gym administrator in the 'admins' collection.
    """
    name: str = Field(..., description="Real name. Never shown to members.")
    email: EmailStr = Field(..., description="Login email.")
    tenantId: str = Field(..., description="ID of the gym the admin manages.")
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "admins"
        indexes = [
            "email",
            "tenantId",
        ]
