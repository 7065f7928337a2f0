"""
Exponential backoff with jitter for unreliable provider calls.

Built on tenacity. Each call site picks a preset from RetryConfigs; the
orchestrator never imposes one globally.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from services.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.25


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter: bool = True

    def with_max_retries(self, max_retries: Optional[int]) -> "RetryConfig":
        """Apply an environment-level override, if one is set."""
        if max_retries is None:
            return self
        return replace(self, max_retries=max_retries)


def compute_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number `attempt` (1-based)."""
    delay = min(config.max_delay, config.base_delay * config.backoff_factor ** (attempt - 1))
    if config.jitter:
        spread = delay * JITTER_RATIO
        delay = max(0.0, delay + random.uniform(-spread, spread))
    return delay


class RetryConfigs:
    """Named presets; values match the production tuning."""

    AI_API = RetryConfig(max_retries=3, base_delay=1.0, max_delay=8.0, backoff_factor=2.0)
    FAST_OPERATION = RetryConfig(max_retries=2, base_delay=0.5, max_delay=2.0, backoff_factor=2.0)
    SLOW_OPERATION = RetryConfig(max_retries=5, base_delay=2.0, max_delay=30.0, backoff_factor=1.5)
    CRITICAL_OPERATION = RetryConfig(max_retries=5, base_delay=1.0, max_delay=15.0, backoff_factor=2.0)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig = RetryConfig(),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `operation()` up to `config.max_retries + 1` times.

    Non-retryable errors are re-raised immediately; once retries are
    exhausted the last error is re-raised unchanged.
    """

    def _wait(retry_state: RetryCallState) -> float:
        return compute_delay(retry_state.attempt_number, config)

    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"[Retry] attempt {retry_state.attempt_number}/{config.max_retries} failed, "
            f"retrying in {retry_state.upcoming_sleep:.2f}s: {exc}"
        )

    async def _attempt() -> T:
        # tenacity only awaits coroutine functions; a lambda or partial returning
        # a coroutine would be called synchronously
        return await operation()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(config.max_retries + 1),
        wait=_wait,
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(_attempt)
