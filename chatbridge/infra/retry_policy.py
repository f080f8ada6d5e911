"""Retry policy for outbound platform calls.

Delivery is fire-and-forget by default (a single attempt). Raising the attempt
count turns on exponential backoff with jitter for retryable failures.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import DeliveryError
from ..platforms.base import ContainerNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Retry configuration."""

    attempts: int = 1
    min_delay_ms: int = 400
    max_delay_ms: int = 30000
    jitter: float = 0.1


FIRE_AND_FORGET = RetryConfig(attempts=1)


def backoff_delay_ms(attempt: int, config: RetryConfig) -> float:
    """Delay before the retry that follows a failed *attempt* (1-based)."""
    delay_ms = config.min_delay_ms * (2 ** (attempt - 1))
    delay_ms = min(delay_ms, config.max_delay_ms)
    if config.jitter > 0:
        jitter_amount = delay_ms * config.jitter
        delay_ms += random.uniform(-jitter_amount, jitter_amount)
    return max(0, delay_ms)


def is_retryable_delivery_error(err: Exception) -> bool:
    """Timeouts and generic delivery failures are retryable; missing containers are not."""
    if isinstance(err, ContainerNotFoundError):
        return False
    return isinstance(err, (DeliveryError, asyncio.TimeoutError))


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[dict[str, Any]], None]] = None,
    label: Optional[str] = None,
) -> T:
    """Retry an async function with exponential backoff.

    Args:
        fn: Async function to retry
        config: Retry configuration
        should_retry: Function to determine if error is retryable
        on_retry: Callback on retry
        label: Label for logging

    Returns:
        Result of fn()

    Raises:
        Last exception if all retries fail
    """
    if config is None:
        config = FIRE_AND_FORGET

    for attempt in range(1, config.attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if should_retry and not should_retry(e):
                raise
            if attempt >= config.attempts:
                raise

            delay_ms = backoff_delay_ms(attempt, config)

            if on_retry:
                on_retry({
                    "attempt": attempt,
                    "max_attempts": config.attempts,
                    "delay_ms": delay_ms,
                    "label": label,
                    "error": str(e),
                })

            logger.debug(
                f"Retry {attempt}/{config.attempts} for {label or 'operation'} "
                f"after {delay_ms:.0f}ms: {e}"
            )

            await asyncio.sleep(delay_ms / 1000)

    raise RuntimeError("retry_async called with attempts < 1")


__all__ = [
    "RetryConfig",
    "FIRE_AND_FORGET",
    "backoff_delay_ms",
    "is_retryable_delivery_error",
    "retry_async",
]
