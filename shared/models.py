"""
Shared data models used across modules.

The User model is produced by the OAuth flow and snapshotted into sessions,
so it lives here rather than in either module.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    Identity record for a signed-in user.

    Providers may attach extra fields; they are kept as-is so custom
    profile mappings can carry provider-specific data through a session.
    """

    id: str = Field(..., description="Stable external identifier")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    image: Optional[str] = Field(None, description="Avatar URL")
    email_verified: Optional[datetime] = Field(None, description="When the email was verified")
    role: Optional[str] = Field(None, description="Application role")

    model_config = ConfigDict(
        frozen=True,  # Sessions hold a snapshot, never a live reference
        extra="allow",
    )
