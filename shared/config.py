"""
Centralized configuration for Portcullis.

All settings are loaded from environment variables with sensible defaults.
Settings are namespaced by concern (SESSION_*, OAUTH_*, COOKIE_*, HTTP_*).
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Portcullis"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    base_url: str = "http://localhost:8000"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Signing secret for token-encoded sessions
    auth_secret: str = ""

    # Sessions
    session_strategy: Literal["jwt", "database"] = "jwt"
    session_max_age: int = 30 * 24 * 60 * 60  # 30 days
    session_update_age: int = 24 * 60 * 60  # 24 hours

    # OAuth flow
    oauth_state_ttl: int = 10 * 60  # seconds
    token_refresh_threshold: int = 5 * 60  # seconds

    # Outbound HTTP to identity providers
    http_timeout: float = 10.0
    http_user_agent: str = "portcullis/0.1.0"

    # Cookies
    session_cookie_name: str = "portcullis.session-token"
    cookie_secure: bool = True
    cookie_same_site: Literal["lax", "strict", "none"] = "lax"
    cookie_path: str = "/"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
