"""Rate-limit budget tracking and polling backoff."""

import logging
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_REMAINING = 5000
MAX_BACKOFF_SECONDS = 60.0

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"


@dataclass
class RateLimitStatus:
    """Budget reported by the most recent remote response.

    Starts optimistic since the real budget is unknown until the first
    response. ``reset_at`` is epoch seconds, as the store reports it.
    """

    remaining: int = DEFAULT_REMAINING
    reset_at: float = 0.0


class RateLimiter:
    """Decides when to skip remote calls and how long to back off.

    The status object is shared by reference with the remote adapters so
    every response updates the same budget.
    """

    def __init__(
        self,
        status: RateLimitStatus | None = None,
        max_backoff: float = MAX_BACKOFF_SECONDS,
    ):
        self.status = status if status is not None else RateLimitStatus()
        self.max_backoff = max_backoff

    def record_response(self, remaining: int, reset_at: float) -> None:
        self.status.remaining = remaining
        self.status.reset_at = reset_at

    def record_headers(self, headers: Mapping[str, str]) -> None:
        """Update status from response headers, ignoring absent or bad values."""
        raw_remaining = headers.get(REMAINING_HEADER)
        raw_reset = headers.get(RESET_HEADER)
        if raw_remaining is None or raw_reset is None:
            return

        try:
            remaining = int(raw_remaining)
            reset_at = float(raw_reset)
        except ValueError:
            logger.debug(
                f"Unparseable rate-limit headers: remaining={raw_remaining!r} "
                f"reset={raw_reset!r}"
            )
            return

        self.record_response(remaining, reset_at)

    def should_skip(self, now: float) -> bool:
        """True when the budget is exhausted and the reset time has not passed.

        Args:
            now: Current time in epoch seconds.
        """
        return self.status.remaining <= 1 and now < self.status.reset_at

    def backoff_delay(self, consecutive_errors: int, base_interval: float) -> float:
        """Exponential delay capped at ``max_backoff``, never below ``base_interval``."""
        delay = min(base_interval * (2 ** consecutive_errors), self.max_backoff)
        return max(delay, base_interval)
