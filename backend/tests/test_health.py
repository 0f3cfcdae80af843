"""Health and gateway diagnostics endpoint tests."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.routers.health import router as health_router
from app.services.rate_limiting_service import RateLimitingService


@pytest.mark.asyncio
async def test_health_probe_and_gateway_status() -> None:
    app = FastAPI()
    app.include_router(health_router)
    gateway = RateLimitingService()
    gateway.cache_response("k", "v")
    gateway.check_user_rate_limit("user-1")
    app.state.rate_limiting_service = gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        probe = await client.get("/api/health")
        status = await client.get("/api/health/gateway")

    assert probe.json() == {"status": "healthy"}
    body = status.json()
    assert body["cache_entries"] == 1
    assert body["tracked_users"] == 1
    assert body["in_flight_requests"] == 0
    assert body["queue"]["max_concurrent"] == gateway.queue.max_concurrent
    assert body["queue"]["queue_length"] == 0
    assert set(body["providers"]) == {"anthropic", "google"}


@pytest.mark.asyncio
async def test_app_lifespan_wires_gateway() -> None:
    from app.main import app, lifespan

    async with lifespan(app):
        gateway = app.state.rate_limiting_service
        assert isinstance(gateway, RateLimitingService)
    assert gateway._cleanup_task is None


@pytest.mark.asyncio
async def test_app_lifespan_shutdown_unwinds_in_flight_calls() -> None:
    import asyncio

    from app.main import app, lifespan

    started = asyncio.Event()

    async def _slow():
        started.set()
        await asyncio.sleep(10)

    async with lifespan(app):
        gateway = app.state.rate_limiting_service
        caller = asyncio.create_task(gateway.queue_request(_slow))
        await started.wait()
        assert gateway.queue.get_status().active_requests == 1

    with pytest.raises(asyncio.CancelledError):
        await caller
    assert gateway.queue.get_status().active_requests == 0
