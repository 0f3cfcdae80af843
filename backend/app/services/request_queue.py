"""Global FIFO queue bounding outbound AI calls by concurrency and rate."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from app.config import settings
from app.services.errors import QueueClearedError, RequestTimeoutError

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 1.0
RATE_WAIT_MARGIN_SECONDS = 0.05


@dataclass
class QueuedCall:
    fn: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    enqueued_at: float
    timeout: float | None = None


@dataclass
class QueueStatus:
    queue_length: int
    active_requests: int
    max_concurrent: int
    requests_in_last_second: int
    max_per_second: int


@dataclass
class _RuntimeState:
    active_count: int = 0
    recent_call_timestamps: deque[float] = field(default_factory=deque)


class RequestQueue:
    """Throttle provider calls to ``max_concurrent`` in flight and
    ``max_per_second`` starts per sliding second.

    Calls start in enqueue order; they may finish in any order. A single
    drain task runs while the queue is non-empty. It parks on an event that
    is set whenever a slot frees or the queue is cleared, and sleeps only as
    long as the rate window requires.
    """

    def __init__(
        self,
        max_per_second: int | None = None,
        max_concurrent: int | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_per_second = (
            settings.queue_max_per_second if max_per_second is None else max_per_second
        )
        self.max_concurrent = (
            settings.queue_max_concurrent if max_concurrent is None else max_concurrent
        )
        self._clock = clock
        self._queue: deque[QueuedCall] = deque()
        self._state = _RuntimeState()
        self._wakeup = asyncio.Event()
        self._drain_task: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    async def enqueue(
        self,
        fn: Callable[[], Awaitable[Any]],
        timeout: float | None = None,
    ) -> Any:
        """Queue ``fn`` and wait for its outcome.

        ``timeout`` bounds the execution of ``fn`` once it has started; on
        expiry the call is cancelled, its slot freed, and
        ``RequestTimeoutError`` raised.
        """
        loop = asyncio.get_running_loop()
        call = QueuedCall(
            fn=fn,
            future=loop.create_future(),
            enqueued_at=self._clock(),
            timeout=timeout,
        )
        self._queue.append(call)
        self._ensure_draining()
        return await call.future

    def clear(self) -> int:
        """Reject every call that has not started yet. Running calls are untouched."""
        dropped = 0
        while self._queue:
            call = self._queue.popleft()
            if not call.future.done():
                call.future.set_exception(QueueClearedError())
                dropped += 1
        self._wakeup.set()
        if dropped:
            logger.warning("Request queue cleared; rejected %d pending calls", dropped)
        return dropped

    async def shutdown(self) -> None:
        """Reject queued calls, cancel running ones and wait for them to unwind."""
        self.clear()
        tasks = list(self._running)
        if self._drain_task is not None:
            tasks.append(self._drain_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Request queue shut down; cancelled %d tasks", len(tasks))
        self._drain_task = None

    def get_status(self) -> QueueStatus:
        self._prune_timestamps(self._clock())
        return QueueStatus(
            queue_length=len(self._queue),
            active_requests=self._state.active_count,
            max_concurrent=self.max_concurrent,
            requests_in_last_second=len(self._state.recent_call_timestamps),
            max_per_second=self.max_per_second,
        )

    def _ensure_draining(self) -> None:
        if not self._queue:
            return
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain(), name="ai-request-queue-drain")

    def _prune_timestamps(self, now: float) -> None:
        timestamps = self._state.recent_call_timestamps
        while timestamps and now - timestamps[0] >= RATE_WINDOW_SECONDS:
            timestamps.popleft()

    async def _drain(self) -> None:
        try:
            while self._queue:
                if self._state.active_count >= self.max_concurrent:
                    self._wakeup.clear()
                    await self._wakeup.wait()
                    continue

                now = self._clock()
                self._prune_timestamps(now)
                timestamps = self._state.recent_call_timestamps
                if len(timestamps) >= self.max_per_second:
                    wait = RATE_WINDOW_SECONDS - (now - timestamps[0]) + RATE_WAIT_MARGIN_SECONDS
                    await asyncio.sleep(max(0.0, wait))
                    continue

                call = self._queue.popleft()
                if call.future.done():
                    # The caller gave up while waiting in line.
                    continue

                self._state.active_count += 1
                timestamps.append(self._clock())
                task = asyncio.create_task(self._run(call))
                self._running.add(task)
                task.add_done_callback(self._running.discard)
        finally:
            self._drain_task = None

    async def _run(self, call: QueuedCall) -> None:
        try:
            if call.timeout is None:
                result = await call.fn()
            else:
                try:
                    result = await asyncio.wait_for(call.fn(), call.timeout)
                except asyncio.TimeoutError:
                    logger.warning("Queued AI call exceeded %.1fs deadline", call.timeout)
                    raise RequestTimeoutError(call.timeout) from None
        except asyncio.CancelledError:
            call.future.cancel()
            raise
        except Exception as exc:
            if not call.future.done():
                call.future.set_exception(exc)
        else:
            if not call.future.done():
                call.future.set_result(result)
        finally:
            self._state.active_count -= 1
            self._wakeup.set()
            self._ensure_draining()
