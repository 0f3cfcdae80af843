"""FastAPI dependency injection for the request gateway and LLM providers."""

from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from app.ai.llm_base import LLMError, LLMProvider
from app.ai.llm_factory import build_llm_provider
from app.config import settings
from app.services.rate_limiting_service import RateLimitingService


def get_rate_limiting_service(request: Request) -> RateLimitingService:
    """Return the gateway instance created during application startup."""
    service = getattr(request.app.state, "rate_limiting_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI gateway is not initialised.",
        )
    return service


def get_llm_provider() -> LLMProvider:
    """Build a provider chain for this request so per-call state is never shared."""
    try:
        return build_llm_provider(settings)
    except LLMError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        )


def get_caller_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str | None:
    """Caller identity for rate limiting; None is treated as anonymous."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None
