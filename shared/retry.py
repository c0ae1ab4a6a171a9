"""
Retry with backoff for reconnecting clients.

The event subscriber drives its connect loop through ``call_with_retry``,
injecting an interruptible ``sleep`` so shutdown never waits out a backoff.
"""

import asyncio
import random
from typing import Any, Optional, Callable, Awaitable

from shared.logging import get_logger

logger = get_logger("shared.retry")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff_strategy not in ("exponential", "linear", "fixed"):
            raise ValueError(f"Unknown backoff strategy: {backoff_strategy}")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


async def call_with_retry(func: Callable[..., Awaitable[Any]],
                          *args,
                          exceptions: tuple = (Exception,),
                          config: Optional[RetryConfig] = None,
                          sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                          on_retry: Optional[Callable[[int, float, Exception], None]] = None,
                          **kwargs) -> Any:
    """Await ``func`` until it succeeds or ``config.max_attempts`` is reached.

    The delay after failed attempt ``n`` is ``calculate_delay(n, config)``; no
    delay follows the final attempt. ``on_retry`` gets the failed attempt
    number, the delay about to be slept and the error. Exceptions outside
    ``exceptions``, and anything raised by ``sleep``, propagate unchanged.
    """
    config = config or RetryConfig()
    name = getattr(func, "__name__", repr(func))

    attempt = 1
    while True:
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            if attempt >= config.max_attempts:
                logger.error("All retry attempts exhausted", function=name, attempts=attempt, error=str(e))
                raise RetryError(
                    f"Function {name} failed after {attempt} attempts",
                    last_exception=e,
                    attempts=attempt
                ) from e

            delay = calculate_delay(attempt, config)
            logger.debug("Attempt failed, backing off", function=name, attempt=attempt, delay=delay)
            if on_retry is not None:
                on_retry(attempt, delay, e)

            await sleep(delay)
            attempt += 1
            continue

        if attempt > 1:
            logger.info("Retry succeeded", function=name, attempt=attempt)
        return result


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Delay after the 1-based ``attempt`` failed: ``base * exponential_base^(attempt-1)``."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
