"""Synthetic 429s for exercising client retry and backoff handling.

Enabled with ``TEST_RATE_LIMIT=true``. ``TEST_RATE_LIMIT_ATTEMPTS`` sets how
many attempts fail before requests go through and ``TEST_RATE_LIMIT_CURRENT``
the attempt the process is on.
"""

import logging

from app.config import Settings
from app.services.errors import SimulatedRateLimitError

logger = logging.getLogger(__name__)


def should_simulate_rate_limit(settings: Settings) -> bool:
    return bool(settings.test_rate_limit)


def get_simulated_rate_limit_attempt(settings: Settings) -> int:
    """Return the next simulated attempt (1-based), or 0 once attempts are used up."""
    if settings.test_rate_limit_current < settings.test_rate_limit_attempts:
        return settings.test_rate_limit_current + 1
    return 0


def simulate_rate_limit_if_enabled(settings: Settings) -> None:
    if not should_simulate_rate_limit(settings):
        return
    attempt = get_simulated_rate_limit_attempt(settings)
    if attempt > 0:
        logger.info("Simulating rate limit (attempt %d)", attempt)
        raise SimulatedRateLimitError()
