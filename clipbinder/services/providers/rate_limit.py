"""Per-provider 429 handling.

Each provider owns one RateLimiter. A 429 answer sets a cool-down that
every later request of that provider waits out: ``Retry-After`` when the
server sends it, otherwise exponential backoff starting at ``base_delay``
and doubling up to ``max_delay``, with up to 25% jitter.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable

import httpx

from clipbinder.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Cool-down state for one provider.

    Example:
        >>> limiter = RateLimiter("pexels")
        >>> response = await limiter.request(lambda: client.get(url, params=params))
    """

    def __init__(
        self,
        provider: str,
        base_delay: float = 1.2,
        max_delay: float = 60.0,
        max_retries: int = 3,
        jitter: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize RateLimiter.

        Args:
            provider: Provider name (for errors and logs)
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for any wait
            max_retries: 429 retries before RateLimitError is raised
            jitter: Maximum jitter as a fraction of the wait
            sleep: Sleep coroutine (patched in tests)
        """
        self.provider = provider
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.jitter = jitter
        self._sleep = sleep
        self._backoff = 0.0
        self._next_at = 0.0

    def compute_wait(self, retry_after: str | None) -> float:
        """Seconds to wait after a 429, updating the backoff state."""
        wait: float
        try:
            wait = float(int(retry_after)) if retry_after is not None else -1.0
        except ValueError:
            wait = -1.0

        if wait < 0:
            wait = min(self.max_delay, self._backoff * 2) if self._backoff else self.base_delay
            self._backoff = wait

        return min(self.max_delay, wait * (1 + random.random() * self.jitter))

    async def request(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        """Send a request, waiting out and retrying 429 answers.

        Args:
            send: Zero-argument coroutine factory performing the request

        Returns:
            First non-429 response

        Raises:
            RateLimitError: If the provider keeps answering 429
        """
        attempt = 0
        while True:
            delay = self._next_at - time.monotonic()
            if delay > 0:
                await self._sleep(delay)

            response = await send()
            if response.status_code != 429:
                self._backoff = 0.0
                return response

            wait = self.compute_wait(response.headers.get("retry-after"))
            self._next_at = time.monotonic() + wait

            if attempt >= self.max_retries:
                logger.warning(f"{self.provider} rate limited, giving up after {attempt} retries")
                raise RateLimitError(self.provider, retry_after=wait)

            attempt += 1
            logger.info(f"{self.provider} rate limited, retry {attempt} in {wait:.1f}s")


__all__ = ["RateLimiter"]
