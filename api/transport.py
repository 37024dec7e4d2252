"""
Starlette binding of the session transport contract.

The session module only knows IRequestContext / IResponseContext; these
adapters let it read and write cookies on real FastAPI requests and
responses.
"""

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from modules.sessions.models import CookieOptions


class StarletteRequestContext:
    """Read-only view of an incoming request's cookies and headers."""

    def __init__(self, request: Request):
        self._request = request

    def get_cookie(self, name: str) -> Optional[str]:
        return self._request.cookies.get(name)

    def get_header(self, name: str) -> Optional[str]:
        # Starlette headers are case-insensitive
        return self._request.headers.get(name)


class StarletteResponseContext:
    """Cookie writer over an outgoing response."""

    def __init__(self, response: Response):
        self._response = response

    def set_cookie(self, name: str, value: str, options: CookieOptions) -> None:
        self._response.set_cookie(name, value, **options.as_kwargs())

    def delete_cookie(self, name: str, options: CookieOptions) -> None:
        self._response.delete_cookie(
            name,
            path=options.path,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )
