"""Gateway in front of the AI providers: cache, per-user limits, single-flight, queue."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from app.config import Settings, settings as default_settings
from app.services.errors import RateLimitExceededError
from app.services.rate_limiter import RateLimitDecision, UserRateLimiter
from app.services.request_dedup import RequestDeduplicator
from app.services.request_queue import RequestQueue, QueueStatus
from app.services.response_cache import ResponseCache, generate_cache_key

logger = logging.getLogger(__name__)


@dataclass
class GatewayResult:
    response: Any
    cached: bool


class RateLimitingService:
    """Owns every piece of in-process request bookkeeping.

    One instance is built at application startup and handed to routes via
    dependency injection. State lives in this process only; pass shared
    stores to ``ResponseCache``/``UserRateLimiter`` to span instances.
    """

    def __init__(
        self,
        *,
        cache: ResponseCache | None = None,
        rate_limiter: UserRateLimiter | None = None,
        deduplicator: RequestDeduplicator | None = None,
        queue: RequestQueue | None = None,
        config: Settings | None = None,
    ) -> None:
        self.config = config or default_settings
        self.cache = cache if cache is not None else ResponseCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else UserRateLimiter()
        self.deduplicator = deduplicator if deduplicator is not None else RequestDeduplicator()
        self.queue = queue if queue is not None else RequestQueue()
        self.request_timeout: float | None = self.config.ai_request_timeout_seconds or None
        self._cleanup_task: asyncio.Task | None = None

    # ── Building blocks ──────────────────────────────────────────────

    def check_user_rate_limit(self, user_id: str | None) -> RateLimitDecision:
        return self.rate_limiter.check(user_id)

    def get_cached_response(self, cache_key: str) -> Any | None:
        return self.cache.get(cache_key)

    def cache_response(self, cache_key: str, response: Any) -> None:
        self.cache.put(cache_key, response)

    def generate_cache_key(self, question: str, context: str | None = None) -> str:
        return generate_cache_key(
            question,
            context,
            context_prefix_chars=self.config.cache_context_prefix_chars,
        )

    async def deduplicate_request(
        self,
        request_key: str,
        request_fn: Callable[[], Awaitable[Any]],
        timeout: float | None = None,
    ) -> Any:
        return await self.deduplicator.deduplicate(request_key, request_fn, timeout=timeout)

    async def queue_request(
        self,
        fn: Callable[[], Awaitable[Any]],
        timeout: float | None = None,
    ) -> Any:
        return await self.queue.enqueue(fn, timeout=timeout)

    # ── Full pipeline ────────────────────────────────────────────────

    async def answer(
        self,
        user_id: str | None,
        question: str,
        context: str | None,
        request_fn: Callable[[], Awaitable[Any]],
    ) -> GatewayResult:
        """Serve from cache, else admit the caller and run one shared, queued call.

        Cache hits do not count against the caller's allowance. Raises
        ``RateLimitExceededError`` when the caller is over their limit;
        upstream failures reach every waiter unchanged.
        """
        cache_key = self.generate_cache_key(question, context)
        cached = self.get_cached_response(cache_key)
        if cached is not None:
            return GatewayResult(response=cached, cached=True)

        decision = self.check_user_rate_limit(user_id)
        if not decision.allowed:
            raise RateLimitExceededError(decision.wait_time_ms or 0)

        async def _call_and_store() -> Any:
            response = await self.queue_request(request_fn, timeout=self.request_timeout)
            self.cache_response(cache_key, response)
            return response

        response = await self.deduplicate_request(cache_key, _call_and_store)
        return GatewayResult(response=response, cached=False)

    # ── Housekeeping ─────────────────────────────────────────────────

    def cleanup(self) -> dict[str, int]:
        """Drop expired cache entries and lapsed rate windows."""
        removed = {
            "cache_entries": self.cache.purge_expired(),
            "rate_windows": self.rate_limiter.purge_expired(),
        }
        logger.debug("Gateway cleanup removed %s", removed)
        return removed

    def start_cleanup(self) -> bool:
        """Start the periodic sweep. Returns False where background tasks are not allowed."""
        if self.config.app_runtime == "edge":
            logger.info("Edge runtime: periodic gateway cleanup disabled")
            return False
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(
                self._cleanup_loop(), name="gateway-cleanup"
            )
        return True

    async def stop_cleanup(self) -> None:
        task = self._cleanup_task
        self._cleanup_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def shutdown(self) -> None:
        """Stop the sweep and unwind every queued or running provider call."""
        await self.stop_cleanup()
        await self.queue.shutdown()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            try:
                self.cleanup()
            except Exception as exc:  # pragma: no cover
                logger.error("Gateway cleanup failed: %s", exc)

    def status(self) -> dict[str, Any]:
        queue_status: QueueStatus = self.queue.get_status()
        return {
            "queue": {
                "queue_length": queue_status.queue_length,
                "active_requests": queue_status.active_requests,
                "max_concurrent": queue_status.max_concurrent,
                "requests_in_last_second": queue_status.requests_in_last_second,
                "max_per_second": queue_status.max_per_second,
            },
            "cache_entries": len(self.cache),
            "tracked_users": len(self.rate_limiter),
            "in_flight_requests": len(self.deduplicator),
        }
