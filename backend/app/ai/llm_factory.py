"""Build the primary/fallback LLM pair used by the tutor."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from app.ai.llm_anthropic import AnthropicProvider
from app.ai.llm_base import LLMError, LLMMessage, LLMProvider, LLMUsage
from app.ai.llm_google import GoogleGeminiProvider
from app.config import normalise_llm_provider

logger = logging.getLogger(__name__)


class FallbackLLMProvider(LLMProvider):
    """Try the primary provider, then the fallback for non-quota failures.

    Quota failures on the primary are raised as-is: switching providers
    would only hide a billing problem that needs attention. Streaming falls
    back only if the primary failed before yielding any text.
    """

    def __init__(self, primary: LLMProvider, fallback: LLMProvider | None = None) -> None:
        super().__init__()
        self.primary = primary
        self.fallback = fallback
        self.provider_id = primary.provider_id
        self.model_id = primary.model_id
        self.last_provider_id: str | None = None

    async def generate_stream(
        self,
        system_prompt: str,
        messages: list[LLMMessage],
        max_tokens: int = 8192,
    ) -> AsyncIterator[str]:
        self.last_usage = LLMUsage()
        self.last_provider_id = None
        yielded = False
        try:
            async for chunk in self.primary.generate_stream(system_prompt, messages, max_tokens):
                yielded = True
                yield chunk
            self._finish(self.primary)
            return
        except LLMError as primary_error:
            if yielded or primary_error.is_quota_error or self.fallback is None:
                if primary_error.is_quota_error:
                    logger.error(
                        "%s quota error, not falling back: %s",
                        self.primary.provider_id,
                        primary_error,
                    )
                raise
            logger.warning(
                "%s failed (%s), falling back to %s",
                self.primary.provider_id,
                primary_error,
                self.fallback.provider_id,
            )
            first_error = primary_error

        try:
            async for chunk in self.fallback.generate_stream(system_prompt, messages, max_tokens):
                yield chunk
        except LLMError as fallback_error:
            raise LLMError(
                "Both AI providers failed. "
                f"{self.primary.provider_id} error: {first_error}. "
                f"{self.fallback.provider_id} error: {fallback_error}.",
                status_code=fallback_error.status_code,
            ) from fallback_error
        self._finish(self.fallback)

    def _finish(self, provider: LLMProvider) -> None:
        self.last_provider_id = provider.provider_id
        self.model_id = provider.model_id
        self.last_usage = provider.last_usage

    async def close(self) -> None:
        await self.primary.close()
        if self.fallback is not None:
            await self.fallback.close()


def _build_single_provider(settings, provider: str) -> LLMProvider | None:
    canonical = normalise_llm_provider(provider)
    if canonical == "anthropic":
        api_key = str(getattr(settings, "anthropic_api_key", "") or "")
        if not api_key:
            return None
        return AnthropicProvider(api_key, model_id=settings.llm_model_anthropic)
    if canonical == "google":
        api_key = str(getattr(settings, "google_api_key", "") or "")
        if not api_key:
            return None
        return GoogleGeminiProvider(api_key, model_id=settings.llm_model_google)
    raise LLMError(f"Unsupported LLM provider: {provider}")


def build_llm_provider(settings) -> LLMProvider:
    """Return the configured provider chain, skipping providers without credentials."""
    candidates: list[LLMProvider] = []
    seen: set[str] = set()
    for name in (settings.llm_primary_provider, settings.llm_fallback_provider):
        canonical = normalise_llm_provider(name)
        if not canonical or canonical in seen:
            continue
        seen.add(canonical)
        provider = _build_single_provider(settings, canonical)
        if provider is None:
            logger.warning("No credentials configured for %s; skipping", canonical)
            continue
        candidates.append(provider)

    if not candidates:
        raise LLMError("No AI provider is configured. Set ANTHROPIC_API_KEY or GOOGLE_API_KEY.")
    if len(candidates) == 1:
        return candidates[0]
    return FallbackLLMProvider(candidates[0], candidates[1])
