"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.exceptions import (
    AdapterError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    PortcullisError,
)
from shared.logging_config import configure_logging
from modules.oauth.models import OAuthProviderConfig

from .dependencies import get_container
from .routes import auth, health

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[PortcullisError], int]] = [
    (NotFoundError, 404),
    (AuthenticationError, 401),
    (AuthorizationError, 400),
    (AdapterError, 500),
    (ConfigurationError, 500),
]


def status_for(exc: PortcullisError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def portcullis_error_handler(request: Request, exc: PortcullisError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        f"Starting {settings.app_name} {settings.app_version} "
        f"strategy={settings.session_strategy}"
    )
    yield
    logger.info(f"Shutting down {settings.app_name}")


def create_app(providers: Optional[list[OAuthProviderConfig]] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        providers: Identity providers to register with the service container

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="OAuth2 / OpenID Connect sign-in and session management",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/auth/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PortcullisError, portcullis_error_handler)

    registry = get_container().providers
    for provider in providers or []:
        registry.register(provider)

    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(health.router, prefix="/auth", tags=["health"])

    return app
