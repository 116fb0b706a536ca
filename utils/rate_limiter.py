import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from db.config import settings
from streaming_providers.exceptions import RateLimitException

logger = logging.getLogger(__name__)

T = TypeVar("T")


def rate_limit_wait(base_delay: float = settings.rate_limit_base_delay):
    """
    ``base_delay * 2 ** (attempt - 1)`` seconds, stretched to the provider's
    ``Retry-After`` hint when it asks for longer.
    """
    exponential = wait_exponential(multiplier=base_delay)

    def wait(retry_state: RetryCallState) -> float:
        delay = exponential(retry_state)
        error = retry_state.outcome.exception()
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return delay

    return wait


async def retry_on_rate_limit(
    call: Callable[[], Awaitable[T]],
    max_retries: int = settings.rate_limit_max_retries,
    base_delay: float = settings.rate_limit_base_delay,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "provider",
) -> T:
    """
    Await ``call()``, retrying with exponential backoff while it is rate limited.

    Args:
        call: Zero-argument coroutine factory, invoked once per attempt.
        max_retries: Retries after the first attempt before giving up.
        base_delay: Delay in seconds before the first retry.
        sleep: Awaitable sleep, replaced in tests.
        label: Name used in log messages.

    Raises:
        RateLimitException: The last rate limit error once retries are exhausted.
    """

    def log_retry(retry_state: RetryCallState):
        logger.info(
            f"{label} rate limited, retry {retry_state.attempt_number}/{max_retries} "
            f"in {retry_state.next_action.sleep:.1f}s"
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(RateLimitException),
        stop=stop_after_attempt(max_retries + 1),
        wait=rate_limit_wait(base_delay),
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )
    try:
        return await retrying(call)
    except RateLimitException:
        logger.warning(f"{label} still rate limited after {max_retries} retries")
        raise
