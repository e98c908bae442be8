"""Cooperative cancellation for acquisition runs.

A CancelToken is created by the caller of ``JobOrchestrator.run`` and shared
by every worker. Workers check it before each scene and at each tier
transition; in-flight network calls are raced against it so that a cancel
request aborts them instead of waiting for their timeout.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from clipbinder.core.exceptions import OperationCancelled
from clipbinder.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CancelToken:
    """Shared cancellation handle.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(orchestrator.run(scenes, cancel_token=token))
        >>> token.cancel("user pressed stop")
        >>> scenes, summary = await task
        >>> summary.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation (idempotent; the first reason wins)."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info("Cancellation requested", reason=reason)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled(self._reason)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token fires, the underlying task is cancelled and awaited,
        so cleanup handlers (partial file removal) have run by the time
        OperationCancelled is raised.

        Raises:
            OperationCancelled: If cancellation won the race
        """
        task = asyncio.ensure_future(awaitable)
        if self.is_cancelled:
            task.cancel()
            await asyncio.wait({task})
            raise OperationCancelled(self._reason)

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.wait({task})

        if task.cancelled():
            raise OperationCancelled(self._reason)
        if self.is_cancelled and task.exception() is not None:
            raise OperationCancelled(self._reason)
        return task.result()


__all__ = ["CancelToken"]
