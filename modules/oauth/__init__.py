"""
OAuth authorization flow module.

Handles authorization-URL construction, state/PKCE/nonce issuance and
validation, code-for-token exchange and profile normalization.

Public API:
- IOAuthService / OAuthService: The flow engine
- IFlowStateStore / InMemoryFlowStateStore: Ephemeral flow-state storage
- Models: OAuthProviderConfig, TokenSet, OAuthFlowState, ...
- validate_callback_params: Callback query validation
- Exceptions: InvalidStateError, StateExpiredError, TokenExchangeError, ...
"""

from .interfaces import IOAuthService, IFlowStateStore
from .models import (
    EndpointConfig,
    OAuthProviderConfig,
    TokenSet,
    OAuthFlowState,
    AuthorizationRequest,
    CallbackParams,
    OAuthFlowResult,
)
from .service import OAuthService, get_oauth_service, reset_oauth_service, finalize_token_set
from .store import InMemoryFlowStateStore, get_flow_state_store, reset_flow_state_store
from .callback import validate_callback_params, handle_oauth_error
from .profile import PROFILE_FIELD_CANDIDATES, default_profile
from .exceptions import (
    InvalidStateError,
    StateProviderMismatchError,
    StateExpiredError,
    OAuthCallbackError,
    MissingAuthorizationCodeError,
    MissingStateError,
    TokenExchangeError,
    MissingAccessTokenError,
    UserinfoNotSupportedError,
    UserinfoRequestError,
    ProfileProcessingError,
)

__all__ = [
    # Interfaces
    "IOAuthService",
    "IFlowStateStore",
    # Models
    "EndpointConfig",
    "OAuthProviderConfig",
    "TokenSet",
    "OAuthFlowState",
    "AuthorizationRequest",
    "CallbackParams",
    "OAuthFlowResult",
    # Implementations
    "OAuthService",
    "get_oauth_service",
    "reset_oauth_service",
    "finalize_token_set",
    "InMemoryFlowStateStore",
    "get_flow_state_store",
    "reset_flow_state_store",
    "validate_callback_params",
    "handle_oauth_error",
    "PROFILE_FIELD_CANDIDATES",
    "default_profile",
    # Exceptions
    "InvalidStateError",
    "StateProviderMismatchError",
    "StateExpiredError",
    "OAuthCallbackError",
    "MissingAuthorizationCodeError",
    "MissingStateError",
    "TokenExchangeError",
    "MissingAccessTokenError",
    "UserinfoNotSupportedError",
    "UserinfoRequestError",
    "ProfileProcessingError",
]
