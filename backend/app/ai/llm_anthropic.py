"""Anthropic Claude provider: the primary tutor model."""

import asyncio
import json
import logging
from typing import AsyncIterator

import httpx

from app.ai.llm_base import LLMError, LLMMessage, LLMProvider, LLMUsage

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicProvider(LLMProvider):
    def __init__(self, api_key: str, model_id: str) -> None:
        super().__init__()
        self.api_key = api_key
        self.provider_id = "anthropic"
        self.model_id = model_id

    async def generate_stream(
        self,
        system_prompt: str,
        messages: list[LLMMessage],
        max_tokens: int = 8192,
    ) -> AsyncIterator[str]:
        """Stream tokens from the Messages API.

        A 429 is a quota problem on the account and is raised straight away
        with ``status_code=429``; 5xx responses and timeouts are retried with
        exponential backoff.
        """
        self.last_usage = LLMUsage()
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.model_id,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [
                {"role": msg["role"], "content": _text_of(msg["content"])}
                for msg in messages
            ],
            "stream": True,
        }

        retries = 3
        backoff = 1

        for attempt in range(retries):
            try:
                async with httpx.AsyncClient(timeout=60.0) as client:
                    async with client.stream(
                        "POST", ANTHROPIC_API_URL, json=payload, headers=headers
                    ) as response:
                        if response.status_code == 429:
                            body = await response.aread()
                            raise LLMError(
                                "Claude API quota exceeded (429): "
                                f"{body.decode()[:200]}",
                                status_code=429,
                            )

                        if response.status_code >= 500:
                            if attempt < retries - 1:
                                logger.warning(
                                    "Anthropic API returned %d, retrying in %ds",
                                    response.status_code,
                                    backoff,
                                )
                                await asyncio.sleep(backoff)
                                backoff *= 2
                                continue
                            raise LLMError(
                                f"Anthropic API error {response.status_code} after {retries} retries",
                                status_code=response.status_code,
                            )

                        if response.status_code != 200:
                            body = await response.aread()
                            raise LLMError(
                                f"Anthropic API error {response.status_code}: {body.decode()}",
                                status_code=response.status_code,
                            )

                        async for line in response.aiter_lines():
                            if not line.startswith("data: "):
                                continue
                            data_str = line[6:]
                            if data_str.strip() == "[DONE]":
                                break
                            try:
                                event = json.loads(data_str)
                            except json.JSONDecodeError:
                                continue

                            event_type = event.get("type")
                            if event_type == "message_start":
                                usage = event.get("message", {}).get("usage", {})
                                self.last_usage.input_tokens = usage.get("input_tokens", 0)
                            elif event_type == "content_block_delta":
                                text = event.get("delta", {}).get("text", "")
                                if text:
                                    yield text
                            elif event_type == "message_delta":
                                usage = event.get("usage", {})
                                self.last_usage.output_tokens = usage.get("output_tokens", 0)

                        return

            except httpx.TimeoutException:
                if attempt < retries - 1:
                    logger.warning("Anthropic API timeout, retrying in %ds", backoff)
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue
                raise LLMError("Anthropic API timeout after retries")
            except LLMError:
                raise
            except Exception as e:
                raise LLMError(f"Anthropic API unexpected error: {e}")


def _text_of(content: str | list[dict[str, str]]) -> str:
    if isinstance(content, str):
        return content
    return "\n".join(part.get("text", "") for part in content if part.get("type") == "text")
