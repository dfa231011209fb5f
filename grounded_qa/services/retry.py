"""Bounded exponential backoff for calls to external services during ingestion."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, NamedTuple, Optional, Tuple, Type, TypeVar, Union

from grounded_qa.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(NamedTuple):
    """How many times to retry and how long to wait in between."""

    max_retries: int
    delay: float
    backoff_multiplier: float

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            settings.max_retries,
            settings.retry_delay_seconds,
            settings.retry_backoff_multiplier,
        )

    def wait_time(self, attempt: int) -> float:
        """Seconds to sleep after the zero-based failed attempt."""
        return self.delay * (self.backoff_multiplier ** attempt)


async def retry_with_backoff(
    func: Callable[[], Union[T, Awaitable[T]]],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    policy: Optional[RetryPolicy] = None,
    operation: str = "Operation",
) -> T:
    """
    Call func until it succeeds or the retry budget runs out.

    Args:
        func: Zero-argument callable, sync or async.
        retry_on: Exception types that trigger another attempt. Anything
            else propagates immediately.
        policy: Retry budget, read from settings when omitted.
        operation: Label used in log messages.

    Returns:
        Result of the first successful attempt.

    Raises:
        The exception raised by the final attempt.
    """
    policy = policy or RetryPolicy.from_settings()
    attempts = policy.max_retries + 1

    for attempt in range(attempts):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except retry_on as e:
            if attempt == attempts - 1:
                logger.error(f"{operation} failed after {attempts} attempts: {str(e)}")
                raise
            wait_time = policy.wait_time(attempt)
            logger.warning(
                f"{operation} attempt {attempt + 1}/{attempts} failed: {str(e)}. "
                f"Retrying in {wait_time:.2f}s..."
            )
            await asyncio.sleep(wait_time)
