"""Bounded retries with per-call timeouts.

Every provider call made by the pipeline goes through ``call_with_retries``:
each attempt is wrapped in ``asyncio.wait_for`` and raced against the run's
cancel token. Timeouts become retryable AcquisitionErrors and unexpected provider
exceptions become ProviderFaultErrors, so both are handled like any other
tier-local failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from clipbinder.core.exceptions import (
    AcquisitionError,
    CallTimeoutError,
    OperationCancelled,
    ProviderFaultError,
)
from clipbinder.core.logging import get_logger
from clipbinder.services.acquisition.cancellation import CancelToken

logger = get_logger(__name__)

T = TypeVar("T")


async def call_with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout: float,
    cancel_token: CancelToken | None = None,
    *,
    label: str = "call",
    provider: str | None = None,
) -> T:
    """Run one attempt of ``operation`` with a timeout.

    Raises:
        CallTimeoutError: If the attempt exceeded ``timeout``
        ProviderFaultError: If the provider raised anything but an AcquisitionError
        OperationCancelled: If the token fired while waiting
    """
    bounded = asyncio.wait_for(operation(), timeout=timeout)
    try:
        if cancel_token is None:
            return await bounded
        return await cancel_token.race(bounded)
    except TimeoutError as e:
        raise CallTimeoutError(label, timeout, provider=provider) from e
    except (AcquisitionError, OperationCancelled):
        raise
    except Exception as e:
        logger.exception("Provider call crashed", operation=label, provider=provider)
        raise ProviderFaultError(label, e, provider=provider) from e


async def call_with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    timeout: float,
    cancel_token: CancelToken | None = None,
    label: str = "call",
    provider: str | None = None,
) -> T:
    """Run ``operation`` up to ``retries + 1`` times.

    Non-retryable AcquisitionErrors (missing credentials, constraint
    violations) are raised on first occurrence.

    Args:
        operation: Factory returning a fresh awaitable per attempt
        retries: Extra attempts after the first one
        timeout: Seconds allowed per attempt
        cancel_token: Run cancellation handle
        label: Operation name for logs and timeout messages
        provider: Provider name for logs and errors

    Returns:
        Result of the first successful attempt

    Raises:
        AcquisitionError: Last error once the budget is exhausted
        OperationCancelled: If the run was cancelled
    """
    attempts = max(0, retries) + 1
    last_error: AcquisitionError | None = None

    for attempt in range(attempts):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            return await call_with_timeout(
                operation, timeout, cancel_token, label=label, provider=provider
            )
        except OperationCancelled:
            raise
        except AcquisitionError as e:
            if not e.retryable:
                raise
            last_error = e
            logger.warning(
                "Attempt failed",
                operation=label,
                provider=provider,
                attempt=attempt + 1,
                attempts=attempts,
                error=str(e),
            )

    raise last_error or AcquisitionError(f"{label} failed", provider=provider)


__all__ = ["call_with_retries", "call_with_timeout"]
