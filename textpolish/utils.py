"""Utility helpers for reliability."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .errors import ChatError

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    base_delay: float,
    operation_name: str = "operation",
    should_retry: Callable[[ChatError], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """
    Retry an async operation with linear backoff.

    The operation runs at most `retries + 1` times. Attempt n is followed by a
    `base_delay * n` second pause. Cancellation is re-raised immediately and
    never counts as an attempt.

    Args:
        operation: Coroutine factory to execute.
        retries: Extra attempts allowed after the first one.
        base_delay: Delay in seconds multiplied by the attempt number.
        operation_name: Label for logging/diagnostics.
        should_retry: Predicate deciding whether a ChatError is transient.
            Defaults to `ChatError.retryable`.
        sleep: Awaitable sleep, replaceable in tests.
    """
    predicate = should_retry or (lambda exc: exc.retryable)
    pause = sleep or asyncio.sleep
    attempt = 0
    while True:
        try:
            return await operation()
        except ChatError as exc:
            if exc.cancelled:
                raise
            attempt += 1
            if attempt > retries or not predicate(exc):
                raise
            delay = base_delay * attempt
            logger.warning(
                "retrying %s after failure",
                operation_name,
                extra={
                    "attempt": attempt,
                    "delay_seconds": round(delay, 3),
                    "status": exc.http_status,
                },
            )
            await pause(delay)
