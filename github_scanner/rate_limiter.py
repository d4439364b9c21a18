"""
Rate limiter for GitHub API requests.

Reads the quota headers of every response and blocks until the reset window
has elapsed once the remaining budget is exhausted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Current rate limit status."""
    remaining: int
    reset_at: int  # Unix timestamp


class RateLimiter:
    """
    Manages GitHub API rate limits.

    Calls are fully serialized, so one limiter instance is shared by every
    component that talks to GitHub and throttle() runs after each response,
    before the next request is issued.
    """

    PROGRESS_INTERVAL = 60

    def __init__(
        self,
        threshold: int = 1,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            threshold: Wait once remaining requests drop to this value or below
            clock: Returns the current Unix time
            sleep: Blocks for the given number of seconds
        """
        self.threshold = threshold
        self.clock = clock
        self.sleep = sleep
        self.cached_status: Optional[RateLimitStatus] = None

    def check_rate_limit(self, response: requests.Response) -> Optional[RateLimitStatus]:
        """
        Extract rate limit info from GitHub API response headers.

        Missing or unparsable headers yield None, which never blocks.
        """
        self.cached_status = self.parse_headers(response.headers)
        return self.cached_status

    @staticmethod
    def parse_headers(headers: Mapping[str, str]) -> Optional[RateLimitStatus]:
        try:
            remaining = int(headers["X-RateLimit-Remaining"])
            reset_at = int(headers["X-RateLimit-Reset"])
        except (KeyError, TypeError, ValueError):
            return None
        return RateLimitStatus(remaining=remaining, reset_at=reset_at)

    def should_wait(self) -> bool:
        """Check if we should wait before making next request."""
        if not self.cached_status:
            return False
        return self.cached_status.remaining <= self.threshold

    def wait_if_needed(self) -> float:
        """
        Sleep until the reset timestamp if the quota is exhausted.

        Logs a progress line at least once every PROGRESS_INTERVAL seconds.

        Returns:
            Number of seconds slept
        """
        if not self.should_wait():
            return 0.0

        wait_seconds = self.cached_status.reset_at - self.clock()
        if wait_seconds <= 0:
            return 0.0

        logger.warning("Rate limit hit. Sleeping for %.0f seconds...", wait_seconds)
        remaining = wait_seconds
        while remaining > 0:
            chunk = min(remaining, self.PROGRESS_INTERVAL)
            self.sleep(chunk)
            remaining -= chunk
            if remaining > 0:
                logger.info("Still waiting... %.0f seconds remaining", remaining)

        self.cached_status = None
        return wait_seconds

    def throttle(self, response: requests.Response) -> float:
        """Record the response's quota headers and block if exhausted."""
        self.check_rate_limit(response)
        return self.wait_if_needed()
