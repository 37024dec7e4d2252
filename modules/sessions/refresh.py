"""
Upstream OAuth token refresh.

Refreshes are deduplicated per user: some providers revoke a refresh token
after its first use, so two concurrent refreshes for one user would leave
one of them holding a dead token. Failures are returned as data so a failed
refresh degrades the session instead of ending it.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Union

import httpx

from shared.config import get_settings
from shared.http import create_http_client
from shared.models import User
from modules.oauth.models import OAuthProviderConfig, TokenSet
from modules.oauth.exceptions import MissingAccessTokenError, TokenExchangeError
from modules.oauth.service import finalize_token_set

from .exceptions import TokenRefreshError
from .interfaces import IRequestContext, IResponseContext
from .models import Session, TokenRefreshResult
from .utils import expires_in, remaining_seconds

logger = logging.getLogger(__name__)

REFRESH_ERROR = "token_refresh_failed"


async def refresh_oauth_tokens(
    provider: OAuthProviderConfig,
    refresh_token: Optional[str],
    user: Optional[User] = None,
) -> TokenRefreshResult:
    """
    Trade a refresh token for new tokens at the provider's token endpoint.

    Never raises for provider or network failures; inspect ``success``.
    When the provider issues no new refresh token the old one is kept.
    """
    if not refresh_token:
        return TokenRefreshResult(success=False, error="No refresh token available")

    data = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": provider.client_id,
        "client_secret": provider.client_secret,
    }

    try:
        async with create_http_client() as client:
            response = await client.post(provider.token_url, data=data)
    except httpx.HTTPError as e:
        logger.warning(f"Token refresh request to {provider.id} failed: {e}")
        return TokenRefreshResult(success=False, error=f"Token refresh request failed: {e}")

    if not response.is_success:
        logger.warning(f"Token refresh with {provider.id} returned {response.status_code}")
        return TokenRefreshResult(
            success=False,
            error=(
                f"Token refresh failed: {response.status_code} "
                f"{response.reason_phrase} - {response.text}"
            ),
        )

    try:
        payload = response.json()
    except ValueError:
        return TokenRefreshResult(success=False, error="Token refresh returned a non-JSON body")

    if not isinstance(payload, dict):
        return TokenRefreshResult(success=False, error="Token refresh returned an unexpected body")

    try:
        tokens = finalize_token_set(payload)
    except MissingAccessTokenError:
        return TokenRefreshResult(success=False, error="No access token received from refresh")
    except TokenExchangeError as e:
        logger.warning(f"Token refresh with {provider.id} returned a malformed body")
        return TokenRefreshResult(success=False, error=e.message)

    if not tokens.refresh_token:
        tokens = tokens.model_copy(update={"refresh_token": refresh_token})

    logger.info(f"Refreshed upstream tokens with provider={provider.id}")
    return TokenRefreshResult(success=True, tokens=tokens, user=user)


async def refresh_access_token(
    provider: OAuthProviderConfig, refresh_token: str
) -> TokenSet:
    """
    Raising variant of refresh_oauth_tokens.

    Raises:
        TokenRefreshError: The refresh failed
    """
    result = await refresh_oauth_tokens(provider, refresh_token)
    if not result.success or result.tokens is None:
        raise TokenRefreshError(result.error or "Token refresh failed")
    return result.tokens


def should_refresh_tokens(session: Session, threshold: Optional[int] = None) -> bool:
    """
    Whether a session's upstream tokens are due for refresh.

    Compares the session's own remaining lifetime against ``threshold``
    (default 5 minutes), since the upstream token's expiry is not always
    known to us.
    """
    if not session.access_token or not session.refresh_token:
        return False
    if threshold is None:
        threshold = get_settings().token_refresh_threshold
    return remaining_seconds(session) < threshold


def should_refresh_token(
    tokens: Union[TokenSet, dict[str, Any]], buffer_seconds: int = 300
) -> bool:
    """Whether a token set is within ``buffer_seconds`` of its own ``expires_at``."""
    if isinstance(tokens, TokenSet):
        refresh_token, expires_at = tokens.refresh_token, tokens.expires_at
    else:
        refresh_token, expires_at = tokens.get("refresh_token"), tokens.get("expires_at")

    if not refresh_token or not expires_at:
        return False
    return expires_at - int(time.time()) <= buffer_seconds


def handle_refresh_error(error: Any, session: Session) -> Session:
    """Mark a session as degraded by a failed refresh without invalidating it."""
    logger.warning(f"Token refresh error for user={session.user.id}: {error}")
    return session.model_copy(update={"error": REFRESH_ERROR})


def has_refresh_error(session: Session) -> bool:
    return session.error == REFRESH_ERROR


def clear_refresh_error(session: Session) -> Session:
    return session.model_copy(update={"error": None})


class RefreshCoordinator:
    """
    In-flight refresh registry keyed by user id.

    The registry entry is installed before the refresh starts and removed
    by the refresh task itself when it finishes, so there is never more
    than one outbound refresh per user. Waiters are shielded: a caller
    that gives up does not cancel the refresh other callers depend on.
    """

    def __init__(self, max_age: Optional[int] = None):
        self._max_age = max_age
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def max_age(self) -> int:
        if self._max_age is not None:
            return self._max_age
        return get_settings().session_max_age

    def is_refreshing(self, user_id: str) -> bool:
        return user_id in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

    async def _run(
        self,
        user_id: str,
        provider: OAuthProviderConfig,
        refresh_token: str,
        user: User,
    ) -> TokenRefreshResult:
        try:
            return await refresh_oauth_tokens(provider, refresh_token, user)
        finally:
            if self._in_flight.get(user_id) is asyncio.current_task():
                del self._in_flight[user_id]

    async def refresh_tokens(
        self, session: Session, provider: OAuthProviderConfig
    ) -> TokenRefreshResult:
        """Refresh the session's upstream tokens, joining any refresh already running."""
        if not session.refresh_token:
            return TokenRefreshResult(success=False, error="No refresh token available")

        user_id = session.user.id
        task = self._in_flight.get(user_id)
        if task is None:
            task = asyncio.ensure_future(
                self._run(user_id, provider, session.refresh_token, session.user)
            )
            self._in_flight[user_id] = task
        else:
            logger.debug(f"Joining in-flight token refresh for user={user_id}")

        return await asyncio.shield(task)

    def apply_result(self, session: Session, result: TokenRefreshResult) -> Session:
        """Merge a refresh result into a session, or tag it as degraded."""
        if not result.success or result.tokens is None:
            return handle_refresh_error(result.error, session)

        return session.model_copy(
            update={
                "access_token": result.tokens.access_token,
                "refresh_token": result.tokens.refresh_token or session.refresh_token,
                "expires": expires_in(self.max_age),
                "error": None,
            }
        )

    async def refresh_session(
        self, session: Session, provider: OAuthProviderConfig
    ) -> Session:
        """Refresh upstream tokens and return the updated (or degraded) session."""
        result = await self.refresh_tokens(session, provider)
        return self.apply_result(session, result)

    def reset(self) -> None:
        """Forget in-flight refreshes (for testing); running tasks are not cancelled."""
        self._in_flight.clear()


# Process-wide coordinator
_coordinator_instance: Optional[RefreshCoordinator] = None


def get_refresh_coordinator() -> RefreshCoordinator:
    """Get the process-wide refresh coordinator."""
    global _coordinator_instance
    if _coordinator_instance is None:
        _coordinator_instance = RefreshCoordinator()
    return _coordinator_instance


def reset_refresh_coordinator() -> None:
    """Reset the process-wide refresh coordinator (for testing)."""
    global _coordinator_instance
    if _coordinator_instance is not None:
        _coordinator_instance.reset()
    _coordinator_instance = None


async def auto_refresh_session(
    session: Session,
    provider: OAuthProviderConfig,
    coordinator: Optional[RefreshCoordinator] = None,
) -> Session:
    """Refresh the session's upstream tokens only if they are due."""
    if not should_refresh_tokens(session):
        return session
    if coordinator is None:
        coordinator = get_refresh_coordinator()
    return await coordinator.refresh_session(session, provider)


async def get_session_with_refresh(
    request: IRequestContext,
    provider: Optional[OAuthProviderConfig] = None,
    manager=None,
    response: Optional[IResponseContext] = None,
    coordinator: Optional[RefreshCoordinator] = None,
) -> Optional[Session]:
    """
    Resolve the request's session, refreshing upstream tokens when due.

    A failed refresh returns the session tagged with REFRESH_ERROR; a
    successful one is written back through the session manager.
    """
    if manager is None:
        from .manager import get_session_manager
        manager = get_session_manager()

    session = await manager.get_session(request)
    if session is None or provider is None or not should_refresh_tokens(session):
        return session

    if coordinator is None:
        coordinator = get_refresh_coordinator()
    refreshed = await coordinator.refresh_session(session, provider)
    if has_refresh_error(refreshed):
        return refreshed

    return await manager.update_session(
        session,
        {
            "access_token": refreshed.access_token,
            "refresh_token": refreshed.refresh_token,
            "expires": refreshed.expires,
            "error": None,
        },
        response,
    )
