"""
Health check endpoint.
"""

from fastapi import APIRouter, Depends

from shared.config import get_settings

from ..dependencies import get_providers
from ..models import HealthResponse
from ..providers import ProviderRegistry

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    providers: ProviderRegistry = Depends(get_providers),
) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running, with the configured strategy and
    registered providers.
    """
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        session_strategy=settings.session_strategy,
        providers=providers.ids(),
    )
