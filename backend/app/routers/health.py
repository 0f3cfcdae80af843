"""Health check endpoints and gateway diagnostics."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.config import settings
from app.dependencies import get_rate_limiting_service
from app.services.rate_limiting_service import RateLimitingService

router = APIRouter(prefix="/api/health", tags=["health"])


def _configured_providers() -> dict[str, bool]:
    return {
        "anthropic": bool(settings.anthropic_api_key),
        "google": bool(settings.google_api_key),
    }


@router.get("")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}


@router.get("/gateway")
async def gateway_health(
    gateway: Annotated[RateLimitingService, Depends(get_rate_limiting_service)],
):
    """Report queue pressure, cache size and which AI providers have credentials."""
    return {
        **gateway.status(),
        "runtime": settings.app_runtime,
        "providers": _configured_providers(),
        "primary_provider": settings.llm_primary_provider,
        "fallback_provider": settings.llm_fallback_provider,
    }
