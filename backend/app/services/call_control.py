"""Debounce and throttle wrappers for callers that fire on every keystroke."""

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Debounced:
    """Callable that delays ``fn`` until calls stop for ``wait_seconds``.

    Coroutine results are run as tasks held by the wrapper until they finish;
    failures are logged rather than left for the event loop to report.
    """

    def __init__(self, fn: Callable[..., Any], wait_seconds: float) -> None:
        self._fn = fn
        self._wait = wait_seconds
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait, self._fire, args, kwargs)

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        result = self._fn(*args, **kwargs)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Debounced call %s failed: %s",
                getattr(self._fn, "__qualname__", self._fn),
                exc,
            )

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> int:
        """Number of fired coroutine calls that have not finished."""
        return len(self._tasks)

    def cancel(self) -> None:
        """Drop the scheduled call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Throttled:
    """Callable that runs ``fn`` at most once per ``limit_seconds``.

    Calls during the cooldown return None. Coroutine results are returned
    as awaitables for the caller to await.
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        limit_seconds: float,
        clock: Callable[[], float],
    ) -> None:
        self._fn = fn
        self._limit = limit_seconds
        self._clock = clock
        self._cooldown_until: float | None = None
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        now = self._clock()
        if self._cooldown_until is not None and now < self._cooldown_until:
            return None
        self._cooldown_until = now + self._limit
        return self._fn(*args, **kwargs)


def debounce(fn: Callable[..., Any], wait_seconds: float) -> Debounced:
    """Run ``fn`` once the calls stop for ``wait_seconds``, with the last call's arguments.

    Must be called from inside a running event loop. Coroutine functions are
    scheduled as tasks when the timer fires.
    """
    return Debounced(fn, wait_seconds)


def throttle(
    fn: Callable[..., Any],
    limit_seconds: float,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Throttled:
    """Run ``fn`` on the first call, then ignore calls for ``limit_seconds``."""
    return Throttled(fn, limit_seconds, clock)
