"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together the OAuth flow
engine, the session manager and the provider registry. Routes only see the
interfaces; swapping the flow-state store or the session adapter happens
here.
"""

from typing import TYPE_CHECKING, Optional

from .providers import ProviderRegistry

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.oauth.interfaces import IOAuthService
    from modules.sessions.interfaces import IAdapter
    from modules.sessions.manager import SessionManager


class ServiceContainer:
    """
    Container for all service instances.

    Services are created lazily on first access and cached for the
    lifetime of the container. Use reset() to clear them for testing.
    """

    def __init__(self) -> None:
        self._oauth_service: "IOAuthService | None" = None
        self._session_manager: "SessionManager | None" = None
        self._adapter: "IAdapter | None" = None
        self._providers = ProviderRegistry()

    @property
    def oauth(self) -> "IOAuthService":
        """Get the OAuth flow service instance."""
        if self._oauth_service is None:
            from modules.oauth.service import get_oauth_service
            self._oauth_service = get_oauth_service()
        return self._oauth_service

    @property
    def sessions(self) -> "SessionManager":
        """Get the session manager, built from settings and the configured adapter."""
        if self._session_manager is None:
            from modules.sessions.manager import create_session_manager
            self._session_manager = create_session_manager(adapter=self._adapter)
        return self._session_manager

    @property
    def providers(self) -> ProviderRegistry:
        return self._providers

    def set_adapter(self, adapter: Optional["IAdapter"]) -> None:
        """Install the persistence adapter used by the database strategy."""
        self._adapter = adapter
        self._session_manager = None

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._oauth_service = None
        self._session_manager = None
        self._adapter = None
        self._providers = ProviderRegistry()


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    The next call to get_container() creates a fresh container. Primarily
    used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_oauth() -> "IOAuthService":
    """FastAPI dependency for the OAuth flow service."""
    return get_container().oauth


def get_sessions() -> "SessionManager":
    """FastAPI dependency for the session manager."""
    return get_container().sessions


def get_providers() -> ProviderRegistry:
    """FastAPI dependency for the provider registry."""
    return get_container().providers
