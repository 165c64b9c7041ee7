"""
Timeout and retry helpers for external collaborator calls.

Embedding, digest generation and reranking cross process or network
boundaries, so every call is bounded by a timeout and transient failures are
retried with exponential backoff.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from a3s_context.utils.exceptions import CollaboratorError
from a3s_context.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float | None,
    error_type: type[CollaboratorError],
    operation_name: str,
) -> T:
    """
    Await a collaborator call, converting a timeout into a transient error.

    Args:
        awaitable: The pending collaborator call
        timeout: Seconds to wait (None waits forever)
        error_type: CollaboratorError subclass to raise on timeout
        operation_name: Name for logging and the error message

    Returns:
        Result of the call

    Raises:
        error_type: If the call times out (transient=True)
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        logger.warning(
            f"{operation_name} timed out after {timeout}s",
            extra={"operation": operation_name, "timeout": timeout},
        )
        raise error_type(
            f"{operation_name} timed out after {timeout}s",
            transient=True,
            context={"operation": operation_name, "timeout": timeout},
        ) from e


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_retries: int = 3,
    retry_delay: float = 0.5,
) -> T:
    """
    Retry an async operation with exponential backoff on transient errors.

    Permanent collaborator errors and any other exception propagate
    immediately.

    Args:
        operation: Async callable to retry
        operation_name: Name for logging
        max_retries: Maximum attempts (>= 1)
        retry_delay: Base delay between attempts in seconds

    Returns:
        Result of operation
    """
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return await operation()
        except CollaboratorError as e:
            if not e.transient or attempt == attempts - 1:
                raise
            delay = retry_delay * (2**attempt)
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{attempts}): {e}. "
                f"Retrying in {delay}s...",
                extra={
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "error_type": type(e).__name__,
                },
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")
