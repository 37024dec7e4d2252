"""
Session lifecycle module.

Creates, resolves, renews and destroys sessions through one of two
strategies, and coordinates refresh of upstream OAuth tokens.

Public API:
- SessionManager, create_session_manager, get_session_manager
- Strategies: TokenSessionStrategy (jwt), StoreSessionStrategy (database)
- Contracts: ISessionStrategy, IAdapter, IRequestContext, IResponseContext
- Refresh: RefreshCoordinator, refresh_oauth_tokens, should_refresh_tokens, ...
- Exceptions: AdapterCapabilityError, SessionNotFoundError, ...
"""

from .interfaces import ISessionStrategy, IAdapter, IRequestContext, IResponseContext
from .models import (
    Session,
    SessionStrategyKind,
    LinkedAccount,
    SessionRecord,
    SessionRecordUpdate,
    SessionAndUser,
    VerificationToken,
    TokenRefreshResult,
    CookieOptions,
)
from .token_strategy import TokenSessionStrategy
from .store_strategy import StoreSessionStrategy, detect_capabilities
from .manager import (
    SessionManager,
    create_session_manager,
    get_session_manager,
    reset_session_manager,
)
from .refresh import (
    REFRESH_ERROR,
    RefreshCoordinator,
    get_refresh_coordinator,
    reset_refresh_coordinator,
    refresh_oauth_tokens,
    refresh_access_token,
    should_refresh_tokens,
    should_refresh_token,
    auto_refresh_session,
    get_session_with_refresh,
    handle_refresh_error,
    has_refresh_error,
    clear_refresh_error,
)
from .background import (
    BackgroundRefreshManager,
    get_background_refresh_manager,
    reset_background_refresh_manager,
)
from .cookies import get_session_cookie, set_session_cookie, delete_session_cookie
from .utils import (
    should_refresh_session,
    is_session_expired,
    get_session_duration,
    session_from_jwt,
    jwt_from_session,
)
from .exceptions import (
    AdapterCapabilityError,
    AdapterOperationError,
    SessionNotFoundError,
    TokenRefreshError,
)

__all__ = [
    # Interfaces
    "ISessionStrategy",
    "IAdapter",
    "IRequestContext",
    "IResponseContext",
    # Models
    "Session",
    "SessionStrategyKind",
    "LinkedAccount",
    "SessionRecord",
    "SessionRecordUpdate",
    "SessionAndUser",
    "VerificationToken",
    "TokenRefreshResult",
    "CookieOptions",
    # Strategies and manager
    "TokenSessionStrategy",
    "StoreSessionStrategy",
    "detect_capabilities",
    "SessionManager",
    "create_session_manager",
    "get_session_manager",
    "reset_session_manager",
    # Refresh
    "REFRESH_ERROR",
    "RefreshCoordinator",
    "get_refresh_coordinator",
    "reset_refresh_coordinator",
    "refresh_oauth_tokens",
    "refresh_access_token",
    "should_refresh_tokens",
    "should_refresh_token",
    "auto_refresh_session",
    "get_session_with_refresh",
    "handle_refresh_error",
    "has_refresh_error",
    "clear_refresh_error",
    "BackgroundRefreshManager",
    "get_background_refresh_manager",
    "reset_background_refresh_manager",
    # Cookies and utilities
    "get_session_cookie",
    "set_session_cookie",
    "delete_session_cookie",
    "should_refresh_session",
    "is_session_expired",
    "get_session_duration",
    "session_from_jwt",
    "jwt_from_session",
    # Exceptions
    "AdapterCapabilityError",
    "AdapterOperationError",
    "SessionNotFoundError",
    "TokenRefreshError",
]
