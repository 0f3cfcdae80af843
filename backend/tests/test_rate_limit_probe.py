"""Synthetic rate-limit endpoint tests."""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.routers.rate_limit_probe import retry_after_seconds, router


@pytest_asyncio.fixture
async def probe_client():
    app = FastAPI(title="rate-limit-probe-test")
    app.include_router(router)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.mark.asyncio
async def test_attempt_three_returns_429_with_four_second_retry(probe_client) -> None:
    response = await probe_client.post("/api/test/rate-limit", json={"attempt": 3})

    assert response.status_code == 429
    assert response.headers["retry-after"] == "4"
    body = response.json()
    assert body["type"] == "error"
    assert body["status"] == 429
    assert body["retryAfter"] == 4
    assert body["attempt"] == 3
    assert body["maxAttempts"] == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("attempt,expected", [(1, "1"), (2, "2"), (4, "8"), (5, "16")])
async def test_backoff_doubles_per_attempt(probe_client, attempt, expected) -> None:
    response = await probe_client.post("/api/test/rate-limit", json={"attempt": attempt})
    assert response.status_code == 429
    assert response.headers["retry-after"] == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"attempt": 0}, {}, {"attempt": 6}, {"attempt": -1}])
async def test_out_of_range_attempts_succeed(probe_client, payload) -> None:
    response = await probe_client.post("/api/test/rate-limit", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "success"
    assert "retry logic worked" in body["answer"]


@pytest.mark.asyncio
async def test_missing_body_succeeds(probe_client) -> None:
    response = await probe_client.post("/api/test/rate-limit")
    assert response.status_code == 200


def test_retry_after_arithmetic() -> None:
    assert [retry_after_seconds(n) for n in range(1, 6)] == [1, 2, 4, 8, 16]


@pytest.mark.asyncio
async def test_malformed_or_fractional_attempt_fails_validation(probe_client) -> None:
    malformed = await probe_client.post(
        "/api/test/rate-limit",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    fractional = await probe_client.post("/api/test/rate-limit", json={"attempt": 2.5})

    assert malformed.status_code == 422
    assert fractional.status_code == 422
