"""Shared HTTP connection pool for provider clients and media downloads.

Stock searches, media downloads and generation calls all go through one
``httpx.AsyncClient``. Providers attach their own auth headers per request,
so a single pool can serve every provider at once.
"""

from typing import Self

import httpx

from clipbinder.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "clipbinder/0.1 (+media acquisition)"


class HTTPClient:
    """Lazily created, reusable ``httpx.AsyncClient``.

    Created once by the container and closed at shutdown. If the pool was
    closed (e.g. between CLI runs in one process), the next access to
    ``client`` opens a fresh one with the same settings.

    Example:
        async with HTTPClient(timeout=60.0) as http:
            async with http.client.stream("GET", url) as response:
                ...
    """

    def __init__(
        self,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize pool settings.

        Args:
            timeout: Read/write/pool timeout in seconds
            connect_timeout: Connection timeout in seconds (capped at ``timeout``)
            max_connections: Maximum number of open connections
            max_keepalive_connections: Maximum idle connections kept alive
            user_agent: User-Agent header sent with every request
            transport: Custom transport (mock transports in tests)
        """
        self.timeout = httpx.Timeout(timeout, connect=min(connect_timeout, timeout))
        self.limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=min(max_keepalive_connections, max_connections),
        )
        self.user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.opened = 0

    @property
    def client(self) -> httpx.AsyncClient:
        """Underlying httpx client, opened on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=self.limits,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self._transport,
            )
            self.opened += 1
            logger.debug(
                "HTTP pool opened",
                max_connections=self.limits.max_connections,
                read_timeout=self.timeout.read,
            )
        return self._client

    @property
    def is_closed(self) -> bool:
        return self._client is None or self._client.is_closed

    async def close(self) -> None:
        """Close the pool. Safe to call more than once."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("HTTP pool closed")
        self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = ["HTTPClient", "DEFAULT_USER_AGENT"]
