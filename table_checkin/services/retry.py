"""
Retry Controller

Linear backoff for read-only, idempotent operations: position sampling,
zone validation and table lookups. Session establishment stages are never
passed through here.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """
    Retry an async operation with delay = delay_seconds * attempt.

    Attributes:
        max_attempts: Total tries including the first
        delay_seconds: Backoff step
        attempts: Attempt number last reached by ``run``. Each call keeps
            its own count, so concurrent callers may share one policy

    Example:
        >>> policy = RetryPolicy(max_attempts=3, delay_seconds=2.0)
        >>> coord = await policy.run(sampler.read, retry_on=lambda e: ...)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay_seconds: float = 2.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.attempts = 0
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt``."""
        return self.delay_seconds * attempt

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        retry_on: Callable[[Exception], bool],
        label: str = "operation",
    ) -> T:
        """
        Call ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory
            retry_on: Predicate deciding whether an error is worth retrying
            label: Name used in log lines

        Raises:
            The last error when it is not retryable or attempts are exhausted
        """
        attempt = 0
        while True:
            attempt += 1
            self.attempts = attempt
            try:
                return await operation()
            except Exception as e:
                if not retry_on(e) or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{label} failed (attempt {attempt}/{self.max_attempts}): "
                    f"{e} - retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
