"""
Portcullis HTTP API.

FastAPI binding of the OAuth flow and session lifecycle.
"""

from .app import create_app

__all__ = ["create_app"]
