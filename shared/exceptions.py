"""
Base exception classes for Portcullis.

Each module should define its own exceptions that inherit from these bases.
Every error carries a stable machine-readable ``code`` and free-form
``details`` so integrating applications can log or map them consistently.
"""

from typing import Optional, Any


class PortcullisError(Exception):
    """
    Base exception for all Portcullis errors.

    All custom exceptions should inherit from this class.
    """

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthenticationError(PortcullisError):
    """Authentication failed (invalid or missing credentials)."""

    default_code = "AUTHENTICATION_ERROR"


class AuthorizationError(PortcullisError):
    """OAuth authorization flow failed (state, code, tokens or profile)."""

    default_code = "AUTHORIZATION_ERROR"


class NotFoundError(PortcullisError):
    """Requested resource (e.g. an identity provider) does not exist."""

    default_code = "NOT_FOUND"


class AdapterError(PortcullisError):
    """The persistence adapter is missing a capability or failed."""

    default_code = "ADAPTER_ERROR"


class ConfigurationError(PortcullisError):
    """The environment or configuration is incomplete or inconsistent."""

    default_code = "CONFIGURATION_ERROR"
