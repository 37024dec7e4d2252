"""
Sign-in, callback, session and sign-out endpoints.

The OAuth round trip: /signin/{provider} stores the flow state and redirects
to the provider, /callback/{provider} exchanges the code, creates a session
and redirects back into the application.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from shared.config import get_settings
from shared.exceptions import AuthorizationError
from modules.oauth import IOAuthService, validate_callback_params
from modules.security import sanitize_redirect_url
from modules.sessions import LinkedAccount, SessionManager, should_refresh_session
from modules.sessions.cookies import session_cookie_options

from ..dependencies import get_oauth, get_providers, get_sessions
from ..models import ErrorResponse, SessionResponse, SignOutResponse
from ..providers import ProviderRegistry
from ..transport import StarletteRequestContext, StarletteResponseContext

logger = logging.getLogger(__name__)

router = APIRouter()

CALLBACK_URL_COOKIE = "portcullis.callback-url"


def provider_callback_url(provider_id: str) -> str:
    """The redirect_uri registered with the provider."""
    return f"{get_settings().base_url.rstrip('/')}/auth/callback/{provider_id}"


def error_redirect(code: str) -> RedirectResponse:
    return RedirectResponse(f"/auth/error?{urlencode({'error': code})}", status_code=302)


@router.get("/signin/{provider_id}")
async def signin(
    provider_id: str,
    callback_url: Optional[str] = Query(None, alias="callbackUrl"),
    oauth: IOAuthService = Depends(get_oauth),
    providers: ProviderRegistry = Depends(get_providers),
) -> RedirectResponse:
    """
    Start an OAuth sign-in.

    ``callbackUrl`` is where the user lands after signing in; anything off
    the application's origin is replaced by the base URL.
    """
    settings = get_settings()
    provider = providers.get(provider_id)

    auth_request = oauth.generate_authorization_request(
        provider, provider_callback_url(provider.id)
    )

    redirect = RedirectResponse(auth_request.url, status_code=302)
    destination = sanitize_redirect_url(callback_url or settings.base_url, settings.base_url)
    StarletteResponseContext(redirect).set_cookie(
        CALLBACK_URL_COOKIE,
        destination,
        session_cookie_options(settings.oauth_state_ttl, settings),
    )
    return redirect


@router.get("/callback/{provider_id}")
async def callback(
    provider_id: str,
    request: Request,
    oauth: IOAuthService = Depends(get_oauth),
    sessions: SessionManager = Depends(get_sessions),
    providers: ProviderRegistry = Depends(get_providers),
) -> RedirectResponse:
    """
    Finish an OAuth sign-in.

    Any flow failure sends the user to /auth/error with the error code;
    details stay in the server log.
    """
    settings = get_settings()
    provider = providers.get(provider_id)

    try:
        code, state = validate_callback_params(dict(request.query_params))
        result = await oauth.complete_oauth_flow(
            provider, code, state, provider_callback_url(provider.id)
        )
    except AuthorizationError as e:
        logger.warning(f"OAuth callback for {provider_id} failed: {e.code}: {e.message}")
        return error_redirect(e.code)

    destination = sanitize_redirect_url(
        request.cookies.get(CALLBACK_URL_COOKIE) or settings.base_url,
        settings.base_url,
    )
    redirect = RedirectResponse(destination, status_code=302)
    response_ctx = StarletteResponseContext(redirect)

    account = LinkedAccount.from_tokens(
        provider.id, result.user.id, result.tokens, user_id=result.user.id
    )
    await sessions.create_session(result.user, account, response_ctx)
    response_ctx.delete_cookie(CALLBACK_URL_COOKIE, session_cookie_options(0, settings))
    return redirect


@router.get("/session", response_model=Optional[SessionResponse])
async def get_session(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_sessions),
) -> Optional[SessionResponse]:
    """
    Return the current session, or null when signed out.

    Sliding renewal happens here: a session inside its update window is
    extended and the cookie rewritten.
    """
    session = await sessions.get_session(StarletteRequestContext(request))
    if session is None:
        return None

    if should_refresh_session(session, sessions.strategy.update_age):
        session = await sessions.update_session(
            session, {}, StarletteResponseContext(response)
        )

    return SessionResponse(user=session.user, expires=session.expires, error=session.error)


@router.post("/signout", response_model=SignOutResponse)
async def signout(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_sessions),
) -> SignOutResponse:
    """End the current session and clear its cookie."""
    await sessions.delete_session(
        StarletteRequestContext(request), StarletteResponseContext(response)
    )
    return SignOutResponse()


@router.get("/error", response_model=ErrorResponse, status_code=400)
async def signin_error(error: str = Query("AUTHORIZATION_ERROR")) -> ErrorResponse:
    """Generic sign-in failure page for the end user."""
    return ErrorResponse(error=error, message="Sign-in failed")
