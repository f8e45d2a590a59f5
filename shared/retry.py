"""
Retry helpers for operations that may hit transient failures.

Used by the storage layer: a dropped PostgreSQL connection is retried with
a short backoff, everything else fails on the first attempt.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger

BACKOFF_STRATEGIES = ("exponential", "linear", "fixed")


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and backoff between attempts.

    ``linear`` waits ``base_delay * attempt`` (1s, 2s, ... for the defaults),
    ``exponential`` waits ``base_delay * exponential_base ** (attempt - 1)``
    and ``fixed`` always waits ``base_delay``. Delays are capped at
    ``max_delay``; ``jitter`` spreads them by +/-10%.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_strategy not in BACKOFF_STRATEGIES:
            raise ValueError(f"Unknown backoff strategy: {self.backoff_strategy}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(-delay * 0.1, delay * 0.1)
        return max(0.0, delay)


async def call_with_retry(func: Callable[..., Awaitable[Any]], *args,
                          config: RetryConfig,
                          exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                          retry_if: Optional[Callable[[BaseException], bool]] = None,
                          **kwargs) -> Any:
    """Await ``func(*args, **kwargs)`` until it succeeds or the budget runs out.

    Only exceptions matching ``exceptions`` (and accepted by ``retry_if``) are
    retried. When the budget is exhausted the last exception is re-raised
    unchanged, so callers see the storage driver's own error type.
    """
    name = getattr(func, "__name__", "operation")
    logger = get_logger(f"retry.{name}")

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                raise
            if attempt == config.max_attempts:
                logger.error(
                    "All retry attempts exhausted",
                    attempt=attempt,
                    max_attempts=config.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                "Transient failure, retrying",
                attempt=attempt,
                delay=delay,
                error=str(e),
                error_type=type(e).__name__,
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info("Retry succeeded", attempt=attempt)
        return result


def retry_on_exception(exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                       config: Optional[RetryConfig] = None,
                       retry_if: Optional[Callable[[BaseException], bool]] = None) -> Callable:
    """Decorator form of ``call_with_retry``."""
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            return await call_with_retry(
                func, *args, config=config, exceptions=exceptions, retry_if=retry_if, **kwargs
            )

        return wrapper

    return decorator
