"""
Outbound HTTP client factory for identity-provider calls.

All provider traffic goes through httpx.AsyncClient with an explicit timeout
so a slow provider fails instead of hanging a sign-in.
"""

from typing import Callable, Optional
import httpx

from .config import get_settings

ClientFactory = Callable[[], httpx.AsyncClient]

# Optional override, used by tests to inject a MockTransport
_client_factory: Optional[ClientFactory] = None


def _default_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        headers={
            "Accept": "application/json",
            "User-Agent": settings.http_user_agent,
        },
    )


def create_http_client() -> httpx.AsyncClient:
    """
    Create an AsyncClient for talking to an identity provider.

    Callers own the client and should use it as an async context manager.
    """
    if _client_factory is not None:
        return _client_factory()
    return _default_client()


def set_http_client_factory(factory: Optional[ClientFactory]) -> None:
    """Override how provider clients are built (None restores the default)."""
    global _client_factory
    _client_factory = factory


def reset_http_client_factory() -> None:
    """Restore the default client factory (for testing)."""
    set_http_client_factory(None)
