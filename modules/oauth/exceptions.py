"""
OAuth flow module exceptions.

Every failure of the authorization flow is an AuthorizationError; the
subclasses only refine the machine-readable code so callers can tell a
forged callback from a slow user or a misbehaving provider.
"""

from typing import Any, Optional

from shared.exceptions import AuthorizationError


class InvalidStateError(AuthorizationError):
    """Raised when no flow state exists for the given ``state`` value."""

    def __init__(self, state: Optional[str] = None):
        super().__init__(
            "Invalid or expired OAuth state",
            code="INVALID_STATE",
            details={"state": state} if state else {},
        )


class StateProviderMismatchError(AuthorizationError):
    """Raised when a state was issued for a different provider."""

    def __init__(self, expected: str, received: str):
        super().__init__(
            "OAuth state provider mismatch",
            code="STATE_PROVIDER_MISMATCH",
            details={"expected": expected, "received": received},
        )


class StateExpiredError(AuthorizationError):
    """Raised when a state is older than the flow-state TTL."""

    def __init__(self, age_seconds: Optional[float] = None):
        details = {"age_seconds": int(age_seconds)} if age_seconds is not None else {}
        super().__init__("OAuth state expired", code="STATE_EXPIRED", details=details)


class OAuthCallbackError(AuthorizationError):
    """Raised when the provider redirected back with an ``error`` parameter."""

    def __init__(
        self,
        error: str,
        error_description: Optional[str] = None,
        error_uri: Optional[str] = None,
    ):
        super().__init__(
            error_description or error or "OAuth authorization failed",
            code="OAUTH_CALLBACK_ERROR",
            details={
                "error": error,
                "error_description": error_description,
                "error_uri": error_uri,
            },
        )


class MissingAuthorizationCodeError(AuthorizationError):
    """Raised when the callback carries no ``code``."""

    def __init__(self):
        super().__init__("Missing authorization code in callback", code="MISSING_CODE")


class MissingStateError(AuthorizationError):
    """Raised when the callback carries no ``state``."""

    def __init__(self):
        super().__init__("Missing state parameter in callback", code="MISSING_STATE")


class TokenExchangeError(AuthorizationError):
    """Raised when the token endpoint rejects the request or is unreachable."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if body is not None:
            details["error"] = body
        super().__init__(message, code="TOKEN_EXCHANGE_FAILED", details=details)


class MissingAccessTokenError(AuthorizationError):
    """Raised when a successful token response carries no access token."""

    def __init__(self):
        super().__init__(
            "No access token received from provider",
            code="MISSING_ACCESS_TOKEN",
        )


class UserinfoNotSupportedError(AuthorizationError):
    """Raised when the provider declares no userinfo endpoint."""

    def __init__(self, provider_id: str):
        super().__init__(
            "Provider does not support userinfo endpoint",
            code="USERINFO_NOT_SUPPORTED",
            details={"provider": provider_id},
        )


class UserinfoRequestError(AuthorizationError):
    """Raised when the userinfo request fails or returns non-success."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if body is not None:
            details["error"] = body
        super().__init__(message, code="USERINFO_FAILED", details=details)


class ProfileProcessingError(AuthorizationError):
    """Raised when a raw profile cannot be turned into a User."""

    def __init__(self, message: str, profile: dict[str, Any]):
        super().__init__(
            f"Profile processing failed: {message}",
            code="PROFILE_PROCESSING_FAILED",
            details={"profile": profile},
        )
