"""API request/response models."""

from .auth import HealthResponse, SessionResponse, SignOutResponse
from .errors import ErrorResponse

__all__ = ["ErrorResponse", "HealthResponse", "SessionResponse", "SignOutResponse"]
