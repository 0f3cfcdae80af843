"""Google Gemini provider via the Gemini API (API key transport)."""

import asyncio
import json
import logging
from typing import AsyncIterator

import httpx

from app.ai.llm_base import LLMError, LLMMessage, LLMProvider, LLMUsage

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GoogleGeminiProvider(LLMProvider):
    """Gemini over server-sent events, used as the fallback tutor model."""

    def __init__(self, api_key: str, model_id: str) -> None:
        super().__init__()
        self._api_key = api_key
        self.provider_id = "google"
        self.model_id = model_id

    def _build_stream_url(self) -> str:
        return f"{GEMINI_API_BASE}/models/{self.model_id}:streamGenerateContent?alt=sse"

    async def generate_stream(
        self,
        system_prompt: str,
        messages: list[LLMMessage],
        max_tokens: int = 8192,
    ) -> AsyncIterator[str]:
        self.last_usage = LLMUsage()
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key,
        }
        payload = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [
                {
                    "role": "model" if msg["role"] == "assistant" else "user",
                    "parts": _to_gemini_parts(msg["content"]),
                }
                for msg in messages
            ],
            "generationConfig": {"maxOutputTokens": max_tokens},
        }

        retries = 3
        backoff = 1

        for attempt in range(retries):
            try:
                async with httpx.AsyncClient(timeout=60.0) as client:
                    async with client.stream(
                        "POST",
                        self._build_stream_url(),
                        json=payload,
                        headers=headers,
                    ) as response:
                        if response.status_code == 429:
                            body = await response.aread()
                            raise LLMError(
                                f"Gemini API quota exceeded (429): {body.decode()[:200]}",
                                status_code=429,
                            )

                        if response.status_code >= 500:
                            if attempt < retries - 1:
                                logger.warning(
                                    "Gemini API returned %d, retrying in %ds",
                                    response.status_code,
                                    backoff,
                                )
                                await asyncio.sleep(backoff)
                                backoff *= 2
                                continue
                            raise LLMError(
                                f"Gemini API error {response.status_code} after {retries} retries",
                                status_code=response.status_code,
                            )

                        if response.status_code != 200:
                            body = await response.aread()
                            raise LLMError(
                                f"Gemini API error {response.status_code}: {body.decode()}",
                                status_code=response.status_code,
                            )

                        async for line in response.aiter_lines():
                            if not line.startswith("data: "):
                                continue
                            try:
                                event = json.loads(line[6:])
                            except json.JSONDecodeError:
                                continue

                            usage_meta = event.get("usageMetadata")
                            if usage_meta:
                                self.last_usage.input_tokens = usage_meta.get(
                                    "promptTokenCount", self.last_usage.input_tokens
                                )
                                self.last_usage.output_tokens = usage_meta.get(
                                    "candidatesTokenCount", self.last_usage.output_tokens
                                )

                            candidates = event.get("candidates", [])
                            if not candidates:
                                continue
                            for part in candidates[0].get("content", {}).get("parts", []):
                                text = part.get("text", "")
                                if text:
                                    yield text
                        return

            except httpx.TimeoutException:
                if attempt < retries - 1:
                    logger.warning("Gemini API timeout, retrying in %ds", backoff)
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue
                raise LLMError("Gemini API timeout after retries")
            except LLMError:
                raise
            except Exception as exc:
                raise LLMError(f"Gemini API unexpected error: {exc}")


def _to_gemini_parts(content: str | list[dict[str, str]]) -> list[dict]:
    if isinstance(content, str):
        return [{"text": content}]
    parts = [
        {"text": part.get("text", "")} for part in content if part.get("type") == "text"
    ]
    return parts or [{"text": ""}]
