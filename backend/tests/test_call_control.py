"""Debounce and throttle helper tests."""

import asyncio
import logging

import pytest

from app.services.call_control import Debounced, Throttled, debounce, throttle
from tests.conftest import FakeClock


@pytest.mark.asyncio
async def test_debounce_runs_once_with_last_arguments() -> None:
    calls: list[str] = []
    check_username = debounce(calls.append, 0.05)

    for name in ("a", "al", "ali", "alic", "alice"):
        check_username(name)
        await asyncio.sleep(0.02)

    assert calls == []
    await asyncio.sleep(0.1)
    assert calls == ["alice"]
    assert not check_username.pending


@pytest.mark.asyncio
async def test_debounce_fires_again_after_quiet_period() -> None:
    calls: list[int] = []
    wrapped = debounce(calls.append, 0.02)

    wrapped(1)
    await asyncio.sleep(0.05)
    wrapped(2)
    await asyncio.sleep(0.05)

    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_debounce_cancel_drops_pending_call() -> None:
    calls: list[int] = []
    wrapped = debounce(calls.append, 0.02)

    wrapped(1)
    wrapped.cancel()
    await asyncio.sleep(0.05)

    assert calls == []


@pytest.mark.asyncio
async def test_debounce_schedules_coroutine_functions() -> None:
    seen: list[str] = []

    async def _search(term: str) -> None:
        seen.append(term)

    wrapped = debounce(_search, 0.01)
    wrapped("calc")
    wrapped("calculus")
    await asyncio.sleep(0.05)

    assert seen == ["calculus"]


@pytest.mark.asyncio
async def test_debounced_instances_do_not_share_timers() -> None:
    first: list[int] = []
    second: list[int] = []
    a = debounce(first.append, 0.02)
    b = debounce(second.append, 0.02)

    a(1)
    b(2)
    await asyncio.sleep(0.05)

    assert first == [1]
    assert second == [2]


def test_throttle_runs_leading_call_then_ignores_until_cooldown() -> None:
    clock = FakeClock()
    calls: list[int] = []
    wrapped = throttle(calls.append, 1.0, clock=clock)

    wrapped(1)
    clock.advance(0.5)
    wrapped(2)
    assert calls == [1]

    clock.advance(0.5)
    wrapped(3)
    assert calls == [1, 3]

    clock.advance(0.1)
    wrapped(4)
    assert calls == [1, 3]


def test_throttle_returns_result_of_executed_call() -> None:
    clock = FakeClock()
    wrapped = throttle(lambda x: x * 2, 1.0, clock=clock)

    assert wrapped(2) == 4
    assert wrapped(3) is None


@pytest.mark.asyncio
async def test_failing_debounced_coroutine_is_logged_and_released(caplog) -> None:
    async def _boom(value: int) -> None:
        raise ValueError(f"boom {value}")

    wrapped = debounce(_boom, 0.01)
    with caplog.at_level(logging.ERROR, logger="app.services.call_control"):
        wrapped(1)
        await asyncio.sleep(0.05)

    assert wrapped.running == 0
    assert "boom 1" in caplog.text
    assert not [r for r in caplog.records if r.name == "asyncio"]


@pytest.mark.asyncio
async def test_debounced_coroutine_is_held_while_running() -> None:
    release = asyncio.Event()
    done: list[str] = []

    async def _save(text: str) -> None:
        await release.wait()
        done.append(text)

    wrapped = debounce(_save, 0.01)
    wrapped("draft")
    await asyncio.sleep(0.03)
    assert wrapped.running == 1

    release.set()
    await asyncio.sleep(0.01)
    assert done == ["draft"]
    assert wrapped.running == 0


@pytest.mark.asyncio
async def test_throttle_hands_back_coroutine_for_awaiting() -> None:
    clock = FakeClock()

    async def _double(x: int) -> int:
        return x * 2

    wrapped = throttle(_double, 1.0, clock=clock)
    assert await wrapped(4) == 8
    assert wrapped(5) is None


def test_wrappers_are_public_types() -> None:
    assert isinstance(debounce(print, 0.1), Debounced)
    assert isinstance(throttle(print, 0.1), Throttled)
