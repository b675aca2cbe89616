"""Bounded retry policy used by the ingestion pipeline."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry count plus exponential backoff.

    Attempt n (1-based) that fails with a retryable error waits
    min(max_backoff, retry_backoff * backoff_factor ** (n - 1)) seconds before the
    next attempt. At most max_retries retries follow the first attempt.

    Attributes:
        max_retries:    Retries after the first attempt (0 disables retrying).
        retry_backoff:  Delay before the first retry, in seconds.
        backoff_factor: Multiplier applied per further retry.
        max_backoff:    Upper bound for a single delay, in seconds.
    """

    max_retries: int = Field(default=3, ge=0)
    retry_backoff: float = Field(default=0.5, ge=0.0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    max_backoff: float = Field(default=30.0, ge=0.0)

    def delay_for(self, attempt: int) -> float:
        """Return the delay in seconds after the given failed attempt (1-based)."""
        if attempt < 1:
            return 0.0
        return min(self.max_backoff, self.retry_backoff * self.backoff_factor ** (attempt - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Run operation, retrying retryable failures within the policy bounds.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt.
            is_retryable: Decides whether a raised exception may be retried.
            on_retry: Called with (attempt, error, delay) before each retry.
            sleep: Awaitable sleep, injectable for tests.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The last error once retries are exhausted, or the first
                non-retryable error.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not is_retryable(exc) or attempt > self.max_retries:
                    raise
                delay = self.delay_for(attempt)
                if on_retry is not None:
                    on_retry(attempt, exc, delay)
                await sleep(delay)
