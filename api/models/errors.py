"""
Error response models.

Standardized error responses for the API.
"""

from pydantic import BaseModel, Field
from typing import Any


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
