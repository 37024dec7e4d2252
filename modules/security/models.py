"""
Security module data models.
"""

from typing import Literal
from pydantic import BaseModel, Field


class PKCEChallenge(BaseModel):
    """A PKCE verifier and the challenge derived from it."""

    code_verifier: str = Field(..., description="High-entropy secret kept by the client")
    code_challenge: str = Field(..., description="base64url(SHA-256(verifier))")
    code_challenge_method: Literal["S256"] = "S256"

    model_config = {"frozen": True}
