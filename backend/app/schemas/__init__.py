from app.schemas.gateway import (
    ChatRequest,
    ChatResponse,
    SummarizeRequest,
    SummarizeResponse,
    RateLimitTestRequest,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "SummarizeRequest",
    "SummarizeResponse",
    "RateLimitTestRequest",
]
