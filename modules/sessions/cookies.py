"""
Session cookie helpers over the transport collaborator contract.
"""

from typing import Optional

from shared.config import Settings, get_settings

from .interfaces import IRequestContext, IResponseContext
from .models import CookieOptions

BEARER_PREFIX = "bearer "


def session_cookie_options(
    max_age: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> CookieOptions:
    """Cookie attributes for the session cookie, from settings."""
    settings = settings or get_settings()
    return CookieOptions(
        http_only=True,
        secure=settings.cookie_secure,
        same_site=settings.cookie_same_site,
        path=settings.cookie_path,
        max_age=max_age,
    )


def get_session_cookie(
    request: IRequestContext,
    name: Optional[str] = None,
) -> Optional[str]:
    """
    Read the session token from the request.

    The named cookie wins; an ``Authorization: Bearer`` header is accepted
    for non-browser clients.
    """
    name = name or get_settings().session_cookie_name
    token = request.get_cookie(name)
    if token:
        return token

    authorization = request.get_header("authorization")
    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):].strip() or None
    return None


def set_session_cookie(
    response: IResponseContext,
    session_token: str,
    max_age: int,
    name: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Write the session cookie."""
    settings = settings or get_settings()
    response.set_cookie(
        name or settings.session_cookie_name,
        session_token,
        session_cookie_options(max_age, settings),
    )


def delete_session_cookie(
    response: IResponseContext,
    name: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Expire the session cookie."""
    settings = settings or get_settings()
    response.delete_cookie(
        name or settings.session_cookie_name,
        session_cookie_options(0, settings),
    )
