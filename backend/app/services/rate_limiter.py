"""In memory fixed window rate limiter for per-user AI requests."""

import logging
import math
import time
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass

from app.config import settings

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


@dataclass
class UserRateState:
    user_key: str
    window_reset_at: float
    long_window_reset_at: float
    count: int = 0
    long_count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    wait_time_ms: int | None = None


class UserRateLimiter:
    """Count AI requests per caller in windows anchored to their first request.

    A window opens on the first request after the previous one expired, so
    a burst straddling a boundary can briefly see up to twice the ceiling.
    Rejected calls never increment the counters.

    The long (5 minute) window is always tracked but only enforced when
    ``enforce_long_window`` is set.
    """

    def __init__(
        self,
        store: MutableMapping[str, UserRateState] | None = None,
        *,
        max_per_window: int | None = None,
        window_seconds: float | None = None,
        max_per_long_window: int | None = None,
        long_window_seconds: float | None = None,
        enforce_long_window: bool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: MutableMapping[str, UserRateState] = store if store is not None else {}
        self.max_per_window = (
            settings.rate_limit_user_per_minute if max_per_window is None else max_per_window
        )
        self.window_seconds = (
            settings.rate_limit_window_seconds if window_seconds is None else window_seconds
        )
        self.max_per_long_window = (
            settings.rate_limit_user_per_5_minutes
            if max_per_long_window is None
            else max_per_long_window
        )
        self.long_window_seconds = (
            settings.rate_limit_long_window_seconds
            if long_window_seconds is None
            else long_window_seconds
        )
        self.enforce_long_window = (
            settings.rate_limit_enforce_long_window
            if enforce_long_window is None
            else enforce_long_window
        )
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def check(self, user_id: str | None) -> RateLimitDecision:
        """Admit and count one request, or reject it with the time left in the window."""
        now = self._clock()
        user_key = user_id or ANONYMOUS_USER
        state = self._store.get(user_key)
        if state is None:
            state = UserRateState(
                user_key=user_key,
                window_reset_at=now + self.window_seconds,
                long_window_reset_at=now + self.long_window_seconds,
            )
        if now > state.window_reset_at:
            state.count = 0
            state.window_reset_at = now + self.window_seconds
        if now > state.long_window_reset_at:
            state.long_count = 0
            state.long_window_reset_at = now + self.long_window_seconds
        self._store[user_key] = state

        if state.count >= self.max_per_window:
            return self._reject(user_key, state.window_reset_at - now)
        if self.enforce_long_window and state.long_count >= self.max_per_long_window:
            return self._reject(user_key, state.long_window_reset_at - now)

        state.count += 1
        state.long_count += 1
        self._store[user_key] = state
        return RateLimitDecision(allowed=True)

    def _reject(self, user_key: str, remaining_seconds: float) -> RateLimitDecision:
        wait_time_ms = max(0, math.ceil(remaining_seconds * 1000))
        logger.info("Rate limit reached for %s; retry in %dms", user_key, wait_time_ms)
        return RateLimitDecision(allowed=False, wait_time_ms=wait_time_ms)

    def purge_expired(self) -> int:
        """Forget callers whose windows have all lapsed."""
        now = self._clock()
        expired = [
            key
            for key, state in self._store.items()
            if now > state.window_reset_at
            and (not self.enforce_long_window or now > state.long_window_reset_at)
        ]
        for key in expired:
            del self._store[key]
        return len(expired)
