"""Chat router: tutor answers and conversation summaries behind the AI gateway."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.ai.llm_base import LLMError, LLMProvider
from app.ai.prompts import (
    SUMMARY_SYSTEM_PROMPT,
    TUTOR_SYSTEM_PROMPT,
    build_question_message,
    build_summary_message,
)
from app.config import settings
from app.dependencies import get_caller_id, get_llm_provider, get_rate_limiting_service
from app.schemas.gateway import ChatRequest, ChatResponse, SummarizeRequest, SummarizeResponse
from app.services.errors import (
    GatewayError,
    QueueClearedError,
    RateLimitExceededError,
    RequestTimeoutError,
    SimulatedRateLimitError,
)
from app.services.rate_limit_simulation import simulate_rate_limit_if_enabled
from app.services.rate_limiting_service import RateLimitingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

EMPTY_SUMMARY = "Unable to generate summary."


def _log_usage(event: str, provider: str, llm: LLMProvider) -> None:
    usage = llm.last_usage
    logger.info(
        "%s (provider=%s, model=%s, input_tokens=%d, output_tokens=%d)",
        event,
        provider,
        llm.model_id,
        usage.input_tokens,
        usage.output_tokens,
    )


def _gateway_http_error(exc: Exception) -> HTTPException:
    """Translate gateway and provider failures into client-facing HTTP errors."""
    if isinstance(exc, RateLimitExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )
    if isinstance(exc, SimulatedRateLimitError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, RequestTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    if isinstance(exc, QueueClearedError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI request was cancelled. Please try again.",
        )
    if isinstance(exc, LLMError) and exc.is_quota_error:
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="AI service unavailable",
    )


@router.post("/api/chat", response_model=ChatResponse)
async def ask_tutor(
    payload: ChatRequest,
    gateway: Annotated[RateLimitingService, Depends(get_rate_limiting_service)],
    llm: Annotated[LLMProvider, Depends(get_llm_provider)],
    caller_id: Annotated[str | None, Depends(get_caller_id)],
):
    """Answer a course question, reusing recent identical answers."""
    question = payload.question.strip()
    if not question:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Question is required",
        )

    async def _ask() -> dict[str, str]:
        simulate_rate_limit_if_enabled(settings)
        answer = await llm.generate(
            TUTOR_SYSTEM_PROMPT,
            [{"role": "user", "content": build_question_message(question, payload.context)}],
            max_tokens=settings.llm_max_output_tokens,
        )
        if not answer.strip():
            raise LLMError("AI service returned an empty response")
        provider = getattr(llm, "last_provider_id", None) or llm.provider_id
        _log_usage("Chat answer generated", provider, llm)
        return {"answer": answer, "provider": provider}

    try:
        result = await gateway.answer(
            caller_id or payload.user_id,
            question,
            payload.context,
            _ask,
        )
    except (LLMError, GatewayError) as exc:
        logger.warning("Chat request failed: %s", exc)
        raise _gateway_http_error(exc)
    finally:
        await llm.close()

    logger.info(
        "Chat answer served (provider=%s, cached=%s, chars=%d)",
        result.response["provider"],
        result.cached,
        len(result.response["answer"]),
    )
    return ChatResponse(
        answer=result.response["answer"],
        provider=result.response["provider"],
        cached=result.cached,
    )


@router.post("/api/chat/summarize", response_model=SummarizeResponse)
async def summarize_chat(
    payload: SummarizeRequest,
    gateway: Annotated[RateLimitingService, Depends(get_rate_limiting_service)],
    llm: Annotated[LLMProvider, Depends(get_llm_provider)],
):
    """Summarise a conversation transcript. Summaries are never cached."""
    if not payload.messages.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No messages provided",
        )

    async def _summarise() -> str:
        simulate_rate_limit_if_enabled(settings)
        summary = await llm.generate(
            SUMMARY_SYSTEM_PROMPT,
            [{"role": "user", "content": build_summary_message(payload.messages, payload.chat_title)}],
            max_tokens=settings.llm_max_output_tokens,
        )
        _log_usage(
            "Summary generated",
            getattr(llm, "last_provider_id", None) or llm.provider_id,
            llm,
        )
        return summary

    try:
        summary = await gateway.queue_request(_summarise, timeout=gateway.request_timeout)
    except (LLMError, GatewayError) as exc:
        logger.warning("Summary request failed: %s", exc)
        raise _gateway_http_error(exc)
    finally:
        await llm.close()

    return SummarizeResponse(summary=summary.strip() or EMPTY_SUMMARY)
