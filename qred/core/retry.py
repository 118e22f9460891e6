"""
Bounded retry for ledger operations.
"""

import asyncio
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from qred.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    retry_on: Tuple[Type[BaseException], ...],
    attempts: int,
    base_delay: float = 0.0,
    **kwargs: Any,
) -> T:
    """
    Run ``operation`` until it succeeds or ``attempts`` are used up.

    Only exceptions listed in ``retry_on`` trigger another attempt; anything
    else propagates immediately. Between attempts the coroutine sleeps
    ``base_delay * 2**n`` seconds (no sleep when ``base_delay`` is 0).

    Args:
        operation: Coroutine function performing one complete attempt
        *args: Positional arguments for ``operation``
        retry_on: Exception types that are safe to retry
        attempts: Maximum number of attempts (at least 1)
        base_delay: Initial backoff delay in seconds
        **kwargs: Keyword arguments for ``operation``

    Returns:
        The result of the first successful attempt.

    Raises:
        The last ``retry_on`` exception once attempts are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation(*args, **kwargs)
        except retry_on as e:
            if attempt == attempts:
                logger.warning(
                    "retry_exhausted",
                    operation=getattr(operation, "__name__", repr(operation)),
                    attempts=attempts,
                    error_type=type(e).__name__,
                )
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.info(
                "retrying_operation",
                operation=getattr(operation, "__name__", repr(operation)),
                attempt=attempt,
                delay=delay,
                error_type=type(e).__name__,
            )
            if delay > 0:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")
