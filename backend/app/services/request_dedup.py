"""Single-flight coalescing of identical in-flight AI requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.services.errors import RequestTimeoutError

logger = logging.getLogger(__name__)


class RequestDeduplicator:
    """Share one upstream call between concurrent callers with the same key.

    The pending entry is dropped by a done-callback registered before any
    waiter subscribes, so it is gone before the first waiter resumes. A
    caller arriving after that starts a fresh call.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    async def deduplicate(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[Any]],
        timeout: float | None = None,
    ) -> Any:
        """Await the shared call for ``key``, starting it if none is running.

        ``timeout`` bounds this caller's wait only. Cancelling or timing out
        one waiter leaves the shared call running for the others.
        """
        shared = self._pending.get(key)
        if shared is None:
            shared = asyncio.ensure_future(request_fn())
            self._pending[key] = shared
            shared.add_done_callback(lambda fut: self._release(key, fut))
        else:
            logger.debug("Joining in-flight request for key %r", key)

        if timeout is None:
            return await asyncio.shield(shared)
        try:
            return await asyncio.wait_for(asyncio.shield(shared), timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(timeout) from None

    def _release(self, key: str, fut: asyncio.Future) -> None:
        if self._pending.get(key) is fut:
            del self._pending[key]
        # Mark the outcome retrieved; every waiter re-raises it via shield.
        if not fut.cancelled():
            fut.exception()
