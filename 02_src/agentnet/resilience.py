"""Retry and timeout helpers for outbound calls."""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .errors import OperationTimeoutError, TransportError
from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[BaseException, int, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy applied per outbound call."""

    max_retries: int = 3
    base_delay: float = 0.3
    max_delay: float = 5.0

    def delay(self, attempt: int) -> float:
        """Backoff for a zero-based attempt, with +/-25% jitter."""
        jitter = 0.75 + random.random() * 0.5
        return min(self.base_delay * (2**attempt) * jitter, self.max_delay)


@dataclass(frozen=True)
class TimeoutPolicy:
    """Deadlines in seconds per operation class."""

    tool: float = 30.0
    model: float = 60.0
    task: float = 120.0
    handoff: float = 60.0


async def with_timeout(
    fn: Callable[[], Awaitable[T]],
    timeout: float,
    operation: str,
) -> T:
    """Await fn() and raise OperationTimeoutError once timeout elapses."""
    try:
        return await asyncio.wait_for(fn(), timeout=timeout)
    except OperationTimeoutError:
        raise
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(operation, timeout) from e


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retryable: tuple[type[BaseException], ...] = (TransportError, OperationTimeoutError),
    on_retry: RetryCallback | None = None,
) -> T:
    """
    Call fn() until it succeeds or the policy is exhausted.

    Only exceptions listed in retryable are retried; anything else propagates
    immediately. The last retryable error is re-raised after max_retries.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except retryable as e:
            if attempt >= policy.max_retries:
                raise
            delay = policy.delay(attempt)
            attempt += 1
            if on_retry is not None:
                on_retry(e, attempt, delay)
            else:
                logger.warning(
                    "Retrying after %s (attempt %s/%s, delay %.2fs)",
                    e,
                    attempt,
                    policy.max_retries,
                    delay,
                )
            await asyncio.sleep(delay)
