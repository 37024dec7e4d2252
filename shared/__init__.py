"""
Shared infrastructure for Portcullis.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- exceptions: Base exception classes
- http: Outbound HTTP client factory
- models: The User identity record

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .exceptions import (
    PortcullisError,
    AuthenticationError,
    AuthorizationError,
    AdapterError,
    ConfigurationError,
    NotFoundError,
)
from .http import create_http_client, set_http_client_factory, reset_http_client_factory
from .models import User

__all__ = [
    "Settings",
    "get_settings",
    "PortcullisError",
    "AuthenticationError",
    "AuthorizationError",
    "AdapterError",
    "ConfigurationError",
    "NotFoundError",
    "create_http_client",
    "set_http_client_factory",
    "reset_http_client_factory",
    "User",
]
