"""Shared test fixtures and mock implementations."""

from typing import AsyncIterator

from app.ai.llm_base import LLMError, LLMProvider, LLMUsage


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockLLMProvider(LLMProvider):
    """Mock LLM provider that yields predetermined tokens.

    Counts calls and can be told to fail with a given error instead.
    """

    def __init__(
        self,
        tokens: list[str] | None = None,
        *,
        provider_id: str = "mock",
        error: LLMError | None = None,
        input_tokens: int = 10,
        output_tokens: int = 5,
    ) -> None:
        super().__init__()
        self.tokens = tokens if tokens is not None else ["Hello", " ", "world"]
        self.provider_id = provider_id
        self.model_id = f"{provider_id}-model"
        self.error = error
        self.calls = 0
        self.closed = False
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens

    async def generate_stream(
        self,
        system_prompt: str,
        messages: list[dict],
        max_tokens: int = 2048,
    ) -> AsyncIterator[str]:
        self.calls += 1
        self.last_usage = LLMUsage()
        if self.error is not None:
            raise self.error
        for token in self.tokens:
            yield token
        self.last_usage.input_tokens = self._input_tokens
        self.last_usage.output_tokens = self._output_tokens

    async def close(self) -> None:
        self.closed = True
