"""
Session manager.

Front door for session lifecycle: delegates to the configured strategy and
keeps the session cookie in step with whatever the strategy returns.
"""

import logging
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.exceptions import ConfigurationError, PortcullisError
from shared.models import User

from .cookies import set_session_cookie
from .interfaces import IAdapter, IRequestContext, IResponseContext, ISessionStrategy
from .models import LinkedAccount, Session, SessionStrategyKind
from .store_strategy import StoreSessionStrategy
from .token_strategy import TokenSessionStrategy

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Session lifecycle over a single strategy.

    Cookies are only written when a response context is supplied, so the
    manager is equally usable from request handlers and background jobs.
    """

    def __init__(self, strategy: ISessionStrategy, settings: Optional[Settings] = None):
        self._strategy = strategy
        self._settings = settings or get_settings()

    @property
    def strategy(self) -> ISessionStrategy:
        return self._strategy

    @property
    def kind(self) -> SessionStrategyKind:
        return self._strategy.kind

    def _write_cookie(self, response: IResponseContext, session: Session) -> None:
        if not session.session_token:
            return
        set_session_cookie(
            response,
            session.session_token,
            max_age=self._strategy.max_age,
            name=self._strategy.cookie_name or None,
            settings=self._settings,
        )

    async def create_session(
        self,
        user: User,
        account: Optional[LinkedAccount] = None,
        response: Optional[IResponseContext] = None,
    ) -> Session:
        """Create a session and, given a response, set its cookie."""
        session = await self._strategy.create_session(user, account)
        if response is not None:
            self._write_cookie(response, session)
        logger.info(f"Signed in user={user.id} strategy={self.kind.value}")
        return session

    async def get_session(self, request: IRequestContext) -> Optional[Session]:
        return await self._strategy.get_session(request)

    async def update_session(
        self,
        session: Session,
        update: dict[str, Any],
        response: Optional[IResponseContext] = None,
    ) -> Session:
        """Apply an update; the cookie is rewritten only if token or expiry changed."""
        updated = await self._strategy.update_session(session, update)
        changed = (
            updated.session_token != session.session_token
            or updated.expires != session.expires
        )
        if response is not None and changed:
            self._write_cookie(response, updated)
        return updated

    async def delete_session(
        self, request: IRequestContext, response: IResponseContext
    ) -> None:
        await self._strategy.delete_session(request, response)
        logger.info(f"Signed out strategy={self.kind.value}")

    async def refresh_session(
        self,
        session: Session,
        response: Optional[IResponseContext] = None,
    ) -> Optional[Session]:
        """
        Extend a session to a full ``max_age``.

        Returns None when the strategy cannot refresh it (e.g. the record
        is gone); the error is logged rather than raised.
        """
        try:
            refreshed = await self._strategy.refresh_session(session)
        except PortcullisError as e:
            logger.warning(f"Session refresh failed: {e.code}: {e.message}")
            return None
        if response is not None:
            self._write_cookie(response, refreshed)
        return refreshed


def create_session_manager(
    settings: Optional[Settings] = None,
    adapter: Optional[IAdapter] = None,
) -> SessionManager:
    """
    Build a SessionManager for the configured strategy.

    Raises:
        ConfigurationError: jwt strategy without a secret, or database
            strategy without an adapter
    """
    settings = settings or get_settings()
    strategy_kind = SessionStrategyKind(settings.session_strategy)
    cookie_name = settings.session_cookie_name

    if strategy_kind is SessionStrategyKind.JWT:
        if not settings.auth_secret:
            raise ConfigurationError(
                "JWT secret is required for JWT session strategy",
                details={"setting": "AUTH_SECRET"},
            )
        strategy: ISessionStrategy = TokenSessionStrategy(
            secret=settings.auth_secret,
            max_age=settings.session_max_age,
            update_age=settings.session_update_age,
            cookie_name=cookie_name,
        )
    else:
        if adapter is None:
            raise ConfigurationError(
                "Database adapter is required for database session strategy"
            )
        strategy = StoreSessionStrategy(
            adapter=adapter,
            max_age=settings.session_max_age,
            update_age=settings.session_update_age,
            cookie_name=cookie_name,
        )

    return SessionManager(strategy, settings)


# Module-level instance getter
_manager_instance: Optional[SessionManager] = None


def get_session_manager(adapter: Optional[IAdapter] = None) -> SessionManager:
    """Get the session manager singleton, creating it from settings on first use."""
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = create_session_manager(adapter=adapter)
    return _manager_instance


def reset_session_manager() -> None:
    """Reset the session manager singleton (for testing)."""
    global _manager_instance
    _manager_instance = None
