"""Anthropic provider tests."""

from __future__ import annotations

import json

import pytest

from app.ai.llm_anthropic import AnthropicProvider
from app.ai.llm_base import LLMError


class _FakeResponse:
    def __init__(self, status_code: int = 200, body: bytes = b"") -> None:
        self.status_code = status_code
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def aiter_lines(self):
        yield (
            "data: "
            + json.dumps({"type": "message_start", "message": {"usage": {"input_tokens": 11}}})
        )
        yield (
            "data: "
            + json.dumps({"type": "content_block_delta", "delta": {"text": "OK"}})
        )
        yield (
            "data: "
            + json.dumps({"type": "message_delta", "usage": {"output_tokens": 3}})
        )
        yield "data: [DONE]"

    async def aread(self) -> bytes:
        return self._body


class _FakeAsyncClient:
    last_call: dict | None = None
    calls = 0
    response = _FakeResponse()

    def __init__(self, *args, **kwargs) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def stream(self, method, url, json=None, headers=None):
        type(self).calls += 1
        type(self).last_call = {
            "method": method,
            "url": url,
            "json": json,
            "headers": headers,
        }
        return type(self).response


@pytest.mark.asyncio
async def test_anthropic_stream_uses_selected_model(monkeypatch) -> None:
    monkeypatch.setattr("app.ai.llm_anthropic.httpx.AsyncClient", _FakeAsyncClient)
    provider = AnthropicProvider("ak-test", model_id="claude-haiku-4-5")

    chunks = []
    async for chunk in provider.generate_stream(
        system_prompt="Test",
        messages=[{"role": "user", "content": "hello"}],
        max_tokens=5,
    ):
        chunks.append(chunk)

    assert "".join(chunks) == "OK"
    assert provider.last_usage.input_tokens == 11
    assert provider.last_usage.output_tokens == 3
    call = _FakeAsyncClient.last_call or {}
    assert call["json"]["model"] == "claude-haiku-4-5"
    assert call["json"]["messages"] == [{"role": "user", "content": "hello"}]
    assert call["headers"]["x-api-key"] == "ak-test"


@pytest.mark.asyncio
async def test_anthropic_429_is_raised_without_retry(monkeypatch) -> None:
    class _QuotaClient(_FakeAsyncClient):
        calls = 0
        response = _FakeResponse(status_code=429, body=b'{"error": "rate_limit_error"}')

    monkeypatch.setattr("app.ai.llm_anthropic.httpx.AsyncClient", _QuotaClient)
    provider = AnthropicProvider("ak-test", model_id="claude-sonnet-4-5")

    with pytest.raises(LLMError) as exc_info:
        await provider.generate("Test", [{"role": "user", "content": "hello"}])

    assert exc_info.value.status_code == 429
    assert exc_info.value.is_quota_error
    assert _QuotaClient.calls == 1


@pytest.mark.asyncio
async def test_anthropic_client_error_is_not_quota(monkeypatch) -> None:
    class _BadRequestClient(_FakeAsyncClient):
        response = _FakeResponse(status_code=400, body=b"invalid request")

    monkeypatch.setattr("app.ai.llm_anthropic.httpx.AsyncClient", _BadRequestClient)
    provider = AnthropicProvider("ak-test", model_id="claude-sonnet-4-5")

    with pytest.raises(LLMError) as exc_info:
        await provider.generate("Test", [{"role": "user", "content": "hello"}])

    assert exc_info.value.status_code == 400
    assert not exc_info.value.is_quota_error
