"""
Background upstream-token refresh.

One asyncio task per session wakes up at 80% of the remaining session
lifetime (never sooner than five minutes) and refreshes through the shared
RefreshCoordinator, so background and foreground refreshes never race.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from modules.oauth.models import OAuthProviderConfig

from .models import Session
from .refresh import RefreshCoordinator, get_refresh_coordinator, has_refresh_error
from .utils import remaining_seconds

logger = logging.getLogger(__name__)

MIN_REFRESH_INTERVAL = 5 * 60

RefreshCallback = Callable[[Session], Union[None, Awaitable[None]]]


def refresh_interval(session: Session) -> float:
    """Seconds to wait before the next background refresh."""
    return max(remaining_seconds(session) * 0.8, MIN_REFRESH_INTERVAL)


class BackgroundRefreshManager:
    """Schedules periodic refreshes; disabled until set_enabled(True)."""

    def __init__(self, coordinator: Optional[RefreshCoordinator] = None):
        self._coordinator = coordinator
        self._tasks: dict[str, asyncio.Task] = {}
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def coordinator(self) -> RefreshCoordinator:
        if self._coordinator is not None:
            return self._coordinator
        return get_refresh_coordinator()

    def is_running(self, session_id: str) -> bool:
        return session_id in self._tasks

    def start_background_refresh(
        self,
        session_id: str,
        session: Session,
        provider: OAuthProviderConfig,
        on_refresh: Optional[RefreshCallback] = None,
    ) -> bool:
        """
        Start refreshing ``session`` in the background.

        Must be called from a running event loop. Returns False when
        disabled or when the session has no refresh token.
        """
        if not self._enabled or not session.refresh_token:
            return False

        self.stop_background_refresh(session_id)
        task = asyncio.create_task(self._loop(session_id, session, provider, on_refresh))
        self._tasks[session_id] = task
        return True

    async def _loop(
        self,
        session_id: str,
        session: Session,
        provider: OAuthProviderConfig,
        on_refresh: Optional[RefreshCallback],
    ) -> None:
        try:
            while True:
                await asyncio.sleep(refresh_interval(session))
                refreshed = await self.coordinator.refresh_session(session, provider)
                if has_refresh_error(refreshed):
                    logger.warning(f"Background refresh failed for session={session_id}; stopping")
                    return
                session = refreshed
                if on_refresh is not None:
                    result = on_refresh(refreshed)
                    if inspect.isawaitable(result):
                        await result
        finally:
            if self._tasks.get(session_id) is asyncio.current_task():
                del self._tasks[session_id]

    def stop_background_refresh(self, session_id: str) -> None:
        task = self._tasks.pop(session_id, None)
        if task is not None:
            task.cancel()

    def set_enabled(self, enabled: bool) -> None:
        """Turn background refresh on or off; turning it off stops every task."""
        self._enabled = enabled
        if not enabled:
            self.stop_all()

    def stop_all(self) -> None:
        for session_id in list(self._tasks):
            self.stop_background_refresh(session_id)


_background_instance: Optional[BackgroundRefreshManager] = None


def get_background_refresh_manager() -> BackgroundRefreshManager:
    """Get the process-wide background refresh manager."""
    global _background_instance
    if _background_instance is None:
        _background_instance = BackgroundRefreshManager()
    return _background_instance


def reset_background_refresh_manager() -> None:
    """Stop all background refreshes and drop the manager (for testing)."""
    global _background_instance
    if _background_instance is not None:
        _background_instance.stop_all()
    _background_instance = None
