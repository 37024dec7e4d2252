"""
Auth endpoint response models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from shared.models import User


class SessionResponse(BaseModel):
    """The current session as returned to the client; upstream tokens are never exposed."""

    user: User
    expires: datetime
    error: Optional[str] = None


class SignOutResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    session_strategy: str
    providers: list[str]
