"""Synthetic rate-limit endpoint for exercising client retry and backoff UI.

``POST /api/test/rate-limit`` with ``{"attempt": n}`` answers 429 for
attempts 1-5 with ``Retry-After: 2^(n-1)`` seconds, and 200 otherwise.

``attempt`` must be an integer. Malformed JSON or a fractional attempt
such as 2.5 is rejected by request validation with 422, not with a
429 or a 500 error body.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.schemas.gateway import RateLimitTestRequest

router = APIRouter(prefix="/api/test", tags=["test"])

MAX_SIMULATED_ATTEMPTS = 5


def retry_after_seconds(attempt: int) -> int:
    """Exponential backoff: 1s, 2s, 4s, 8s, 16s."""
    return 2 ** (attempt - 1)


@router.post("/rate-limit")
async def simulate_rate_limit(payload: RateLimitTestRequest | None = None):
    attempt = payload.attempt if payload is not None else 0

    if 0 < attempt <= MAX_SIMULATED_ATTEMPTS:
        retry_after = retry_after_seconds(attempt)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "type": "error",
                "status": 429,
                "message": "Rate limit exceeded (429). Retrying automatically...",
                "retryAfter": retry_after,
                "attempt": attempt,
                "maxAttempts": MAX_SIMULATED_ATTEMPTS,
            },
            headers={"Retry-After": str(retry_after)},
        )

    return {
        "type": "success",
        "message": "Request succeeded after retries",
        "answer": "This is a test response. The retry logic worked correctly!",
    }
