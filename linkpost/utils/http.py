"""
HTTP utilities for LinkPost.
"""
import asyncio
import time
import logging
from collections import defaultdict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}


def domain_of(url: str) -> str:
    """Network location of a URL, lowercased."""
    return urlparse(url).netloc.lower()


class RateLimiter:
    """
    Spaces out requests to the same domain.

    Article links from one feed usually point at the same site, so page
    scrapes are throttled per domain. Domains that keep failing get a longer
    interval until they answer again.
    """
    def __init__(self, requests_per_second: float = 1.0, max_backoff: float = 60.0,
                 failure_threshold: int = 3):
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.max_backoff = max_backoff
        self.failure_threshold = failure_threshold
        self.last_requests = defaultdict(lambda: 0.0)
        self.locks = defaultdict(asyncio.Lock)
        self.failure_counts = defaultdict(int)
        self.intervals = defaultdict(lambda: self.min_interval)

    async def acquire(self, domain: str) -> None:
        """
        Wait until a request to ``domain`` is allowed.

        Args:
            domain: The domain to rate limit
        """
        async with self.locks[domain]:
            elapsed = time.monotonic() - self.last_requests[domain]
            wait_time = self.intervals[domain] - elapsed
            if wait_time > 0:
                logger.debug(f"Rate limiting {domain}, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self.last_requests[domain] = time.monotonic()

    def report_success(self, domain: str) -> None:
        """
        Record a successful request; shrinks the interval back towards the base rate.
        """
        self.failure_counts[domain] = 0
        if self.intervals[domain] > self.min_interval:
            self.intervals[domain] = max(self.min_interval, self.intervals[domain] * 0.8)

    def report_failure(self, domain: str) -> None:
        """
        Record a failed request; doubles the interval once the threshold is reached.
        """
        self.failure_counts[domain] += 1
        if self.failure_counts[domain] >= self.failure_threshold:
            base = max(self.intervals[domain], 1.0)
            self.intervals[domain] = min(self.max_backoff, base * 2.0)
            logger.warning(
                f"Increased interval for {domain} to {self.intervals[domain]:.2f}s "
                f"after {self.failure_counts[domain]} failures"
            )
