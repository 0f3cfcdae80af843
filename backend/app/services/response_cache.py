"""Short-lived cache of AI answers keyed by normalised question."""

import logging
import re
import time
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from typing import Any

from app.config import settings

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class CacheEntry:
    key: str
    response: Any
    created_at: float
    expires_at: float


def generate_cache_key(
    question: str,
    context: str | None = None,
    context_prefix_chars: int | None = None,
) -> str:
    """Normalise a question and join it with the head of its context.

    Casing and incidental whitespace in the question do not change the key.
    Only the first ``context_prefix_chars`` characters of the context count,
    so long contexts sharing a prefix map to the same key.
    """
    if context_prefix_chars is None:
        context_prefix_chars = settings.cache_context_prefix_chars
    normalised = _WHITESPACE_RE.sub(" ", question.lower().strip())
    context_head = context[:context_prefix_chars] if context else ""
    return f"{normalised}:{context_head}"


class ResponseCache:
    """TTL cache for provider responses.

    Expiry is checked lazily on every read. Writes past ``max_entries``
    trigger a sweep of expired entries only, so a cache full of fresh
    entries may grow beyond the limit until they age out.
    """

    def __init__(
        self,
        store: MutableMapping[str, CacheEntry] | None = None,
        *,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: MutableMapping[str, CacheEntry] = store if store is not None else {}
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.cache_max_entries if max_entries is None else max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Any | None:
        """Return the cached response, or None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            self._store.pop(key, None)
            return None
        return entry.response

    def put(self, key: str, response: Any) -> None:
        now = self._clock()
        self._store[key] = CacheEntry(
            key=key,
            response=response,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        if len(self._store) > self.max_entries:
            self.purge_expired()

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if now > entry.expires_at]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)
