"""Bounded retry with exponential backoff, shared by usage persistence paths."""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait between attempts."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.25  # Fraction of the delay added at random

    def delay_for(self, attempt: int) -> float:
        """Delay after a failed attempt (1-based), capped at max_delay."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        from app.config import get_settings

        settings = get_settings()
        return cls(
            max_attempts=settings.store_retry_attempts,
            base_delay=settings.store_retry_base_delay,
            max_delay=settings.store_retry_max_delay,
        )


def _name(func: Callable[..., Any]) -> str:
    return getattr(func, "__name__", repr(func))


async def with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy | None = None,
    exceptions: tuple[Type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """
    Execute an async function with exponential backoff retry.

    Args:
        func: The async function to execute
        *args: Positional arguments to pass to func
        policy: Attempt budget and delays (default RetryPolicy())
        exceptions: Tuple of exception types to catch and retry
        **kwargs: Keyword arguments to pass to func

    Returns:
        The result of the function call

    Raises:
        The last exception if all attempts fail
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except exceptions as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    f"All {policy.max_attempts} attempts failed for {_name(func)}: {e}"
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed for {_name(func)}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")


def sync_with_retry(
    func: Callable[..., T],
    *args: Any,
    policy: RetryPolicy | None = None,
    exceptions: tuple[Type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """
    Execute a sync function with exponential backoff retry.

    Same contract as with_retry, blocking between attempts.
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    f"All {policy.max_attempts} attempts failed for {_name(func)}: {e}"
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed for {_name(func)}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            time.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")
