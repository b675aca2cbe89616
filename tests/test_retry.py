"""Tests for the bounded retry policy."""

import pytest

from shared.exceptions.errors import EmbeddingRejected, EmbeddingUnavailable
from shared.models.retry import RetryPolicy


def _retryable(exc: BaseException) -> bool:
    return getattr(exc, "retryable", False)


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestDelay:
    def test_exponential_backoff(self):
        policy = RetryPolicy(retry_backoff=0.5, backoff_factor=2.0)

        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(retry_backoff=10, backoff_factor=3, max_backoff=25)

        assert policy.delay_for(3) == 25

    def test_no_delay_before_first_attempt(self):
        assert RetryPolicy().delay_for(0) == 0.0


class TestRun:
    async def test_retries_transient_failures_until_success(self):
        policy = RetryPolicy(max_retries=3, retry_backoff=0.1)
        sleep = SleepRecorder()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise EmbeddingUnavailable("busy")
            return "vector"

        result = await policy.run(operation, is_retryable=_retryable, sleep=sleep)

        assert result == "vector"
        assert calls == 3
        assert sleep.delays == [0.1, 0.2]

    async def test_gives_up_after_max_retries(self):
        policy = RetryPolicy(max_retries=2, retry_backoff=0)
        calls = 0
        retries = []

        async def operation():
            nonlocal calls
            calls += 1
            raise EmbeddingUnavailable("down")

        with pytest.raises(EmbeddingUnavailable):
            await policy.run(
                operation,
                is_retryable=_retryable,
                on_retry=lambda attempt, exc, delay: retries.append(attempt),
                sleep=SleepRecorder(),
            )

        assert calls == 3
        assert retries == [1, 2]

    async def test_non_retryable_error_is_raised_immediately(self):
        policy = RetryPolicy(max_retries=5)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise EmbeddingRejected("too long")

        with pytest.raises(EmbeddingRejected):
            await policy.run(operation, is_retryable=_retryable, sleep=SleepRecorder())

        assert calls == 1

    async def test_zero_retries_means_single_attempt(self):
        policy = RetryPolicy(max_retries=0)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise EmbeddingUnavailable("down")

        with pytest.raises(EmbeddingUnavailable):
            await policy.run(operation, is_retryable=_retryable, sleep=SleepRecorder())

        assert calls == 1
