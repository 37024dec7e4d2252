"""
Session module data models.

Session is the caller-facing authenticated context; the *Record models are
what the persistence adapter stores and returns.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models import User
from modules.oauth.models import TokenSet


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (common from SQL drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStrategyKind(str, Enum):
    """How sessions are represented on the wire."""

    JWT = "jwt"  # Self-contained signed token
    DATABASE = "database"  # Opaque token, record held by the adapter


class Session(BaseModel):
    """An authenticated session as seen by the application."""

    user: User
    expires: datetime = Field(..., description="Absolute expiry (UTC)")
    access_token: Optional[str] = Field(None, description="Upstream OAuth access token")
    refresh_token: Optional[str] = Field(None, description="Upstream OAuth refresh token")
    session_token: Optional[str] = Field(
        None, description="Signed token (jwt) or lookup key (database)"
    )
    error: Optional[str] = Field(None, description="Degradation marker, e.g. failed refresh")

    @field_validator("expires")
    @classmethod
    def expires_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class LinkedAccount(BaseModel):
    """An external identity linked to a user, with its upstream tokens."""

    user_id: Optional[str] = None
    type: str = "oauth"
    provider: str
    provider_account_id: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None
    session_state: Optional[str] = None

    @classmethod
    def from_tokens(
        cls,
        provider: str,
        provider_account_id: str,
        tokens: TokenSet,
        user_id: Optional[str] = None,
    ) -> "LinkedAccount":
        return cls(
            user_id=user_id,
            provider=provider,
            provider_account_id=provider_account_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            token_type=tokens.token_type,
            scope=tokens.scope,
            id_token=tokens.id_token,
        )


class SessionRecord(BaseModel):
    """A store-backed session as persisted by the adapter."""

    session_token: str
    user_id: str
    expires: datetime
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("expires")
    @classmethod
    def expires_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class SessionRecordUpdate(BaseModel):
    """Fields to change on a persisted session."""

    session_token: str
    expires: Optional[datetime] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class SessionAndUser(BaseModel):
    """Adapter lookup result: the record and the user it belongs to."""

    session: SessionRecord
    user: User


class VerificationToken(BaseModel):
    """Single-use token for email verification and magic links."""

    identifier: str
    token: str
    expires: datetime


class TokenRefreshResult(BaseModel):
    """
    Outcome of an upstream token refresh.

    Failures are data, not exceptions: a failed refresh degrades a session
    instead of destroying it.
    """

    success: bool
    tokens: Optional[TokenSet] = None
    user: Optional[User] = None
    error: Optional[str] = None


class CookieOptions(BaseModel):
    """Attributes for a cookie written through the transport collaborator."""

    http_only: bool = True
    secure: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"
    path: str = "/"
    max_age: Optional[int] = None

    def as_kwargs(self) -> dict[str, Any]:
        """Keyword arguments in the shape Starlette's set_cookie expects."""
        return {
            "httponly": self.http_only,
            "secure": self.secure,
            "samesite": self.same_site,
            "path": self.path,
            "max_age": self.max_age,
        }
