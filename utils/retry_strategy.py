"""
Caller-side Retry Strategy for Graphiti writes.

The client core never retries a rejected write; callers that want a retry
policy wrap the call themselves:

    from utils.retry_strategy import with_retry, RetryConfig

    config = RetryConfig(max_retries=3, backoff_base=2.0)
    await with_retry(lambda: client.publish(url, tags=tags, note=note), config)

Provides:
- RetryConfig: Configuration for retry behavior
- with_retry: Async wrapper with exponential backoff
- is_retryable_error: Error classification
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx

from utils.errors import WriteRejected

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    backoff_base: float = 2.0  # Exponential base (2^attempt)
    backoff_max: float = 30.0  # Maximum wait time in seconds
    jitter: bool = True  # ±25%

    def get_wait_seconds(self, attempt: int) -> float:
        """
        Calculate wait time for a given attempt (0-indexed).

        Uses exponential backoff: base^attempt, capped at backoff_max.
        """
        wait = min(self.backoff_base ** attempt, self.backoff_max)

        if self.jitter:
            jitter_factor = 0.75 + (random.random() * 0.5)
            wait *= jitter_factor

        return wait


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error is retryable.

    Retryable errors:
    - ConnectionError, TimeoutError, httpx transport errors
    - WriteRejected with 5xx, 429, or no status (transport failure)

    Everything else (4xx rejections, IdentityRequired, InvalidUrl, ...)
    is a caller problem and is not retried.
    """
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    if isinstance(error, httpx.TransportError):
        return True

    if isinstance(error, WriteRejected):
        status = error.status_code
        if status is None:
            return True
        return status == 429 or 500 <= status < 600

    return False


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
) -> T:
    """
    Execute an async function with retry logic.

    Args:
        func: Async function to execute (no arguments)
        config: Retry configuration
        retry_on: Tuple of exception types to retry on (default: use is_retryable_error)

    Returns:
        Result of func() on success

    Raises:
        The last exception if all retries exhausted
    """
    for attempt in range(config.max_retries + 1):  # +1 for initial attempt
        try:
            return await func()

        except Exception as e:
            if retry_on is not None:
                should_retry = isinstance(e, retry_on)
            else:
                should_retry = is_retryable_error(e)

            if not should_retry:
                raise

            if attempt >= config.max_retries:
                logger.error(
                    f"All {config.max_retries} retries exhausted. "
                    f"Last error: {e}"
                )
                raise

            wait_time = config.get_wait_seconds(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {e}. "
                f"Retrying in {wait_time:.2f}s..."
            )

            await asyncio.sleep(wait_time)

    raise RuntimeError("Unexpected state in with_retry")
