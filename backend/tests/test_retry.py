"""Tests for the exponential-backoff retry policy."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from services.errors import InvalidKeyError, RateLimitError
from services.retry import RetryConfig, RetryConfigs, compute_delay, retry_with_backoff


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def flaky(failures):
    """Operation failing with the given exceptions, then returning 'ok'."""
    state = {"calls": 0}

    async def operation():
        state["calls"] += 1
        if state["calls"] <= len(failures):
            raise failures[state["calls"] - 1]
        return "ok"

    return operation, state


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_succeeds(self):
        operation, state = flaky([RateLimitError("p"), RateLimitError("p")])
        sleep = RecordingSleep()

        result = await retry_with_backoff(operation, RetryConfig(), sleep=sleep)

        assert result == "ok"
        assert state["calls"] == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_invalid_key_is_not_retried(self):
        operation, state = flaky([InvalidKeyError("p")])
        sleep = RecordingSleep()

        with pytest.raises(InvalidKeyError):
            await retry_with_backoff(operation, RetryConfig(), sleep=sleep)

        assert state["calls"] == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_last_error(self):
        errors = [RateLimitError("p", retry_after=i) for i in range(4)]
        operation, state = flaky(errors)

        with pytest.raises(RateLimitError) as exc_info:
            await retry_with_backoff(operation, RetryConfig(max_retries=3), sleep=RecordingSleep())

        assert state["calls"] == 4
        assert exc_info.value is errors[-1]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self):
        operation, state = flaky([RateLimitError("p")])

        with pytest.raises(RateLimitError):
            await retry_with_backoff(operation, RetryConfig(max_retries=0), sleep=RecordingSleep())

        assert state["calls"] == 1

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_retried(self):
        operation, state = flaky([ConnectionError("reset")])

        result = await retry_with_backoff(operation, RetryConfig(), sleep=RecordingSleep())

        assert result == "ok"
        assert state["calls"] == 2

    @pytest.mark.asyncio
    async def test_backoff_delays_without_jitter(self):
        operation, _ = flaky([RateLimitError("p")] * 3)
        sleep = RecordingSleep()
        config = RetryConfig(max_retries=3, base_delay=1.0, backoff_factor=2.0, jitter=False)

        await retry_with_backoff(operation, config, sleep=sleep)

        assert sleep.delays == [1.0, 2.0, 4.0]


class TestComputeDelay:
    def test_exponential_growth(self):
        config = RetryConfig(base_delay=1.0, backoff_factor=2.0, max_delay=100.0, jitter=False)
        assert [compute_delay(n, config) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        config = RetryConfig(base_delay=1.0, backoff_factor=2.0, max_delay=10.0, jitter=False)
        assert compute_delay(10, config) == 10.0

    def test_jitter_stays_within_25_percent(self):
        config = RetryConfig(base_delay=4.0, backoff_factor=2.0, max_delay=100.0, jitter=True)
        for _ in range(200):
            delay = compute_delay(1, config)
            assert 3.0 <= delay <= 5.0


class TestRetryConfigs:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.backoff_factor == 2.0
        assert config.max_delay == 10.0
        assert config.jitter is True

    def test_critical_preset_has_more_retries(self):
        assert RetryConfigs.CRITICAL_OPERATION.max_retries > RetryConfigs.AI_API.max_retries
        assert RetryConfigs.FAST_OPERATION.base_delay < RetryConfigs.SLOW_OPERATION.base_delay

    def test_max_retries_override(self):
        overridden = RetryConfigs.AI_API.with_max_retries(0)
        assert overridden.max_retries == 0
        assert overridden.base_delay == RetryConfigs.AI_API.base_delay
        assert RetryConfigs.AI_API.with_max_retries(None) is RetryConfigs.AI_API


class TestOperationShapes:
    @pytest.mark.asyncio
    async def test_lambda_returning_coroutine_is_awaited(self):
        operation, state = flaky([RateLimitError("p")])

        result = await retry_with_backoff(lambda: operation(), RetryConfig(), sleep=RecordingSleep())

        assert result == "ok"
        assert state["calls"] == 2

    @pytest.mark.asyncio
    async def test_lambda_errors_are_classified_and_raised(self):
        operation, state = flaky([InvalidKeyError("p")])

        with pytest.raises(InvalidKeyError):
            await retry_with_backoff(lambda: operation(), RetryConfig(), sleep=RecordingSleep())

        assert state["calls"] == 1
