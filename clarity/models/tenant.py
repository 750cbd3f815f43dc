from beanie import Document
from pydantic import Field


class Tenant(Document):
    """
    A gym. The slug is what clients send in the X-Tenant-Id header.
    """
    name: str = Field(..., description="Gym name.")
    slug: str = Field(..., description="Lowercase unique identifier used in URLs and headers.")
    isActive: bool = Field(default=True, description="Inactive gyms cannot be resolved.")

    class Settings:
        name = "tenants"
        indexes = [
            "slug",
        ]
