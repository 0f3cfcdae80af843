"""Application settings loaded from environment variables via .env file."""

from pathlib import Path
from typing import Literal

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = Path(__file__).resolve().parents[1]

_PROVIDER_ALIASES = {
    "anthropic": "anthropic",
    "claude": "anthropic",
    "google": "google",
    "gemini": "google",
    "google_ai_studio": "google",
    "aistudio": "google",
}


def normalise_llm_provider(value: str) -> str:
    """Map user-friendly provider names onto internal ids."""
    provider = str(value or "").strip().lower().replace("-", "_")
    return _PROVIDER_ALIASES.get(provider, provider)


class Settings(BaseSettings):
    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Deployment runtime. "edge" runtimes forbid long-lived background timers.
    app_runtime: Literal["server", "edge"] = "server"

    # LLM providers
    llm_primary_provider: str = "anthropic"
    llm_fallback_provider: str = "google"
    llm_model_anthropic: str = "claude-sonnet-4-5"
    llm_model_google: str = "gemini-3-flash-preview"
    llm_max_output_tokens: int = 4096
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # Response cache
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 100
    cache_context_prefix_chars: int = 50

    # Per-user rate limiting
    rate_limit_user_per_minute: int = 20
    rate_limit_window_seconds: float = 60.0
    # Declared long-window ceiling. Only enforced when the flag below is set.
    rate_limit_user_per_5_minutes: int = 50
    rate_limit_long_window_seconds: float = 300.0
    rate_limit_enforce_long_window: bool = False

    # Global outbound request queue
    queue_max_concurrent: int = 5
    queue_max_per_second: int = 10
    # Upper bound on a single provider call; 0 disables the deadline.
    ai_request_timeout_seconds: float = 60.0

    # Background sweep of expired cache entries and rate windows
    cleanup_interval_seconds: float = 300.0

    # Synthetic 429 errors for exercising client retry logic
    test_rate_limit: bool = False
    test_rate_limit_attempts: int = 3
    test_rate_limit_current: int = 0

    @field_validator("llm_primary_provider", "llm_fallback_provider", mode="before")
    @classmethod
    def _normalise_llm_provider(cls, value: str) -> str:
        return normalise_llm_provider(str(value))

    @field_validator("app_runtime", mode="before")
    @classmethod
    def _normalise_app_runtime(cls, value: str) -> str:
        runtime = str(value).strip().lower()
        # Node-style runtime names are accepted for parity with existing deploy envs.
        return {"nodejs": "server", "node": "server"}.get(runtime, runtime)

    model_config = ConfigDict(
        env_file=(str(REPO_ROOT / ".env"), str(BACKEND_DIR / ".env")),
        extra="ignore",
    )


settings = Settings()
