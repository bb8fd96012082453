"""
Retry policy shared by the network-backed providers.
"""

import logging
from typing import Any, Awaitable, Callable, Tuple, Type

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("AI_RETRY")

ExceptionTypes = Tuple[Type[BaseException], ...]


async def call_with_retry(
    call: Callable[[], Awaitable[Any]],
    *,
    provider: str,
    attempts: int,
    retry_on: ExceptionTypes,
    never_retry: ExceptionTypes = (),
    wait_seconds: float = 1.0,
) -> Any:
    """
    Await call() until it succeeds or the attempts run out

    Only exceptions in retry_on (and not in never_retry) trigger another
    attempt; anything else propagates immediately. The last exception is
    re-raised unchanged once attempts are exhausted.
    """
    def log_retry(retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"🔄 {provider} attempt {retry_state.attempt_number}/{attempts} failed: "
            f"{type(error).__name__}: {str(error)[:200]}"
        )

    retry_policy = retry_if_exception_type(retry_on)
    if never_retry:
        retry_policy = retry_policy & retry_if_not_exception_type(never_retry)

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(multiplier=wait_seconds, max=10),
        retry=retry_policy,
        before_sleep=log_retry,
        reraise=True,
    ):
        with attempt:
            return await call()
