"""Errors raised by the AI request gateway itself (never by upstream providers)."""

import math


class GatewayError(Exception):
    """Base class for failures synthesised by the gateway layer."""
    pass


class RateLimitExceededError(GatewayError):
    """The caller used up its per-user request allowance for the current window."""

    def __init__(self, wait_time_ms: int) -> None:
        self.wait_time_ms = max(0, int(wait_time_ms))
        super().__init__(
            f"Too many AI requests. Please wait {self.retry_after_seconds}s and try again."
        )

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.wait_time_ms / 1000))


class QueueClearedError(GatewayError):
    """A queued call was dropped before it started."""

    def __init__(self) -> None:
        super().__init__("Request queue cleared")


class RequestTimeoutError(GatewayError):
    """A provider call or a wait on a shared call exceeded its deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"AI request timed out after {timeout_seconds:g}s")


class SimulatedRateLimitError(GatewayError):
    """Synthetic 429 used to exercise client retry logic."""

    status = 429
    retry_after = 2

    def __init__(self) -> None:
        super().__init__("Rate limit exceeded (429). Retrying automatically...")
