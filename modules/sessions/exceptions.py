"""
Session module exceptions.
"""

from shared.exceptions import AdapterError, AuthenticationError


class AdapterCapabilityError(AdapterError):
    """Raised when the persistence adapter lacks a required operation."""

    def __init__(self, capability: str):
        super().__init__(
            f"Database adapter does not support {capability}",
            code="ADAPTER_ERROR",
            details={"capability": capability},
        )
        self.capability = capability


class AdapterOperationError(AdapterError):
    """Raised when an adapter call itself fails."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            f"Adapter {operation} failed: {message}",
            code="ADAPTER_ERROR",
            details={"operation": operation, "error": message},
        )


class SessionNotFoundError(AuthenticationError):
    """Raised when an operation needs a persisted session that does not exist."""

    def __init__(self, message: str = "Session not found"):
        super().__init__(message, code="SESSION_NOT_FOUND")


class TokenRefreshError(AuthenticationError):
    """Raised by the raising refresh variant when a refresh fails."""

    def __init__(self, message: str):
        super().__init__(message, code="TOKEN_REFRESH_FAILED")
