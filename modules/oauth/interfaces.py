"""
OAuth flow module interfaces.

Other modules should depend on these protocols, not the concrete classes.
The flow-state store in particular is expected to be swapped for a shared
TTL cache in multi-instance deployments.
"""

from typing import Any, Iterator, Optional, Protocol, runtime_checkable

from shared.models import User

from .models import (
    AuthorizationRequest,
    OAuthFlowResult,
    OAuthFlowState,
    OAuthProviderConfig,
    TokenSet,
)


@runtime_checkable
class IFlowStateStore(Protocol):
    """Keyed storage for in-progress OAuth flow states."""

    def get(self, state: str) -> Optional[OAuthFlowState]:
        """Return the record for ``state`` without removing it."""
        ...

    def set(self, flow_state: OAuthFlowState) -> None:
        """Store a record under its own ``state`` value."""
        ...

    def delete(self, state: str) -> None:
        """Remove a record; missing keys are ignored."""
        ...

    def sweep(self, ttl_seconds: int) -> int:
        """Remove every record older than ``ttl_seconds``; return how many."""
        ...

    def reset(self) -> None:
        """Drop everything (test isolation / teardown)."""
        ...

    def __iter__(self) -> Iterator[OAuthFlowState]:
        ...

    def __len__(self) -> int:
        ...


@runtime_checkable
class IOAuthService(Protocol):
    """
    Interface for the OAuth authorization flow.

    All failures raise AuthorizationError subclasses; transport errors are
    never surfaced raw.
    """

    def generate_authorization_request(
        self,
        provider: OAuthProviderConfig,
        callback_url: str,
        enable_pkce: Optional[bool] = None,
        scopes: Optional[list[str]] = None,
        additional_params: Optional[dict[str, str]] = None,
    ) -> AuthorizationRequest:
        """Build the provider redirect and persist the flow state."""
        ...

    def get_flow_state(self, state: str) -> Optional[OAuthFlowState]:
        """Look up a flow state without any checks."""
        ...

    def validate_state(self, state: str, expected_provider_id: str) -> OAuthFlowState:
        """Check a callback ``state`` without consuming it."""
        ...

    async def exchange_code_for_tokens(
        self,
        provider: OAuthProviderConfig,
        code: str,
        state: str,
        callback_url: str,
    ) -> TokenSet:
        """Consume the flow state and trade the code for tokens."""
        ...

    async def fetch_user_profile(
        self, provider: OAuthProviderConfig, tokens: TokenSet
    ) -> dict[str, Any]:
        """Fetch the raw identity profile from the userinfo endpoint."""
        ...

    async def normalize_profile(
        self,
        provider: OAuthProviderConfig,
        raw_profile: dict[str, Any],
        tokens: TokenSet,
    ) -> User:
        """Turn a raw profile into a User."""
        ...

    async def complete_oauth_flow(
        self,
        provider: OAuthProviderConfig,
        code: str,
        state: str,
        callback_url: str,
    ) -> OAuthFlowResult:
        """Exchange, fetch and normalize in one call."""
        ...

    def sweep_expired_states(self) -> int:
        """Garbage-collect expired flow states."""
        ...
