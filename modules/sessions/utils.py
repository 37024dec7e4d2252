"""
Session expiry arithmetic and JWT <-> Session conversion.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from shared.models import User

from .models import Session

DEFAULT_MAX_AGE = 30 * 24 * 60 * 60  # 30 days
DEFAULT_UPDATE_AGE = 24 * 60 * 60  # 24 hours

# User fields carried as dedicated JWT claims; everything else is dropped
_JWT_USER_CLAIMS = {"name": "name", "email": "email", "image": "picture", "role": "role"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expires_in(seconds: int, now: Optional[datetime] = None) -> datetime:
    """Absolute expiry ``seconds`` from now, truncated to whole seconds."""
    now = now or utcnow()
    return (now + timedelta(seconds=seconds)).replace(microsecond=0)


def remaining_seconds(session: Session, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return (session.expires - now).total_seconds()


def should_refresh_session(session: Session, update_age: int = DEFAULT_UPDATE_AGE) -> bool:
    """True when the session has less than ``update_age`` seconds left."""
    return remaining_seconds(session) < update_age


def is_session_expired(session: Session) -> bool:
    return session.expires <= utcnow()


def get_session_duration(session: Session) -> int:
    """Whole seconds of lifetime left, never negative."""
    return max(0, int(remaining_seconds(session)))


def merge_session(session: Session, update: dict[str, Any]) -> Session:
    """Apply a partial update, re-validating the result."""
    if not update:
        return session
    data = session.model_dump()
    data.update(update)
    return Session.model_validate(data)


def jwt_from_session(session: Session) -> dict[str, Any]:
    """Claims for a token-encoded session (``iat``/``jti`` are added on signing)."""
    claims: dict[str, Any] = {
        "sub": session.user.id,
        "exp": int(session.expires.timestamp()),
    }
    for field, claim in _JWT_USER_CLAIMS.items():
        value = getattr(session.user, field)
        if value is not None:
            claims[claim] = value
    if session.access_token:
        claims["access_token"] = session.access_token
    if session.refresh_token:
        claims["refresh_token"] = session.refresh_token
    return claims


def session_from_jwt(claims: dict[str, Any], session_token: Optional[str] = None) -> Session:
    """Rebuild a Session from decoded claims."""
    user = User(
        id=claims["sub"],
        name=claims.get("name"),
        email=claims.get("email"),
        image=claims.get("picture"),
        role=claims.get("role"),
    )
    return Session(
        user=user,
        expires=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        access_token=claims.get("access_token"),
        refresh_token=claims.get("refresh_token"),
        session_token=session_token,
    )
