"""Retryable error classification with exponential backoff retry.

Classifies provider errors as retryable (transient) or non-retryable
(permanent). Used by the RunPod client for idempotent calls.

Usage:
    from podhub.core.retryable import is_retryable, with_retry

    # Check if error is retryable
    if is_retryable(exc):
        # retry logic

    # Execute with automatic retry
    result = await with_retry(lambda: some_async_operation())
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from podhub.core.logging_schema import ErrorClass

logger = logging.getLogger(__name__)

T = TypeVar("T")


HTTPX_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)

HTTPX_NON_RETRYABLE = (
    httpx.InvalidURL,
    httpx.TooManyRedirects,
    httpx.UnsupportedProtocol,
)


def is_httpx_retryable(exc: Exception) -> bool:
    """Check if httpx exception is retryable."""
    if isinstance(exc, HTTPX_RETRYABLE):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        # 429 Rate limit - retryable
        if status == 429:
            return True
        # 4xx client errors - not retryable
        if 400 <= status < 500:
            return False
        # 5xx server errors - retryable
        if status >= 500:
            return True
    return False


def is_retryable(exc: Exception) -> bool:
    """Check if error is retryable (transient).

    Args:
        exc: Exception to classify

    Returns:
        True if error is transient and operation can be retried
    """
    return classify_error(exc) == ErrorClass.TRANSIENT


def classify_error(exc: Exception) -> ErrorClass:
    """Classify error as transient, permanent, or unknown.

    Args:
        exc: Exception to classify

    Returns:
        TRANSIENT: can retry
        PERMANENT: should not retry
        UNKNOWN: cannot classify (treated as not retryable)
    """
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorClass.TRANSIENT

    if isinstance(exc, httpx.HTTPStatusError):
        return ErrorClass.TRANSIENT if is_httpx_retryable(exc) else ErrorClass.PERMANENT
    if isinstance(exc, HTTPX_RETRYABLE):
        return ErrorClass.TRANSIENT
    if isinstance(exc, HTTPX_NON_RETRYABLE):
        return ErrorClass.PERMANENT

    return ErrorClass.UNKNOWN


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> T:
    """Execute async operation with exponential backoff retry.

    Only retries transient errors. Permanent and unknown errors are raised
    immediately.

    Args:
        coro_factory: Factory function that creates new coroutine for each attempt
        max_retries: Maximum number of retry attempts (0 = single attempt)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 30.0)

    Returns:
        Result of successful operation

    Raises:
        Exception: The last exception if all retries fail, or immediately
                   for non-retryable errors

    Example:
        result = await with_retry(lambda: client.get("/pods"))
        result = await with_retry(lambda: stop_pod(pod_id), max_retries=2)
    """
    last_exc: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as exc:
            last_exc = exc
            error_class = classify_error(exc)

            if error_class != ErrorClass.TRANSIENT:
                if max_retries > 0:
                    logger.warning(
                        "Non-retryable error (not retrying): %s",
                        exc,
                        extra={"error_class": error_class, "attempt": attempt + 1},
                    )
                raise

            if attempt == max_retries:
                if max_retries > 0:
                    logger.error(
                        "Max retries exceeded (%d attempts): %s",
                        max_retries + 1,
                        exc,
                        extra={"error_class": error_class, "attempt": attempt + 1},
                    )
                raise

            delay = min(base_delay * (2**attempt), max_delay)
            # Jitter: 50% ~ 150% of delay
            jittered_delay = delay * (0.5 + random.random())
            logger.warning(
                "Retryable error (attempt %d/%d, retry in %.1fs): %s",
                attempt + 1,
                max_retries + 1,
                jittered_delay,
                exc,
                extra={
                    "error_class": error_class,
                    "attempt": attempt + 1,
                    "delay": jittered_delay,
                },
            )
            await asyncio.sleep(jittered_delay)

    # Unreachable, satisfies type checker
    if last_exc:
        raise last_exc
    raise RuntimeError("Unexpected state in with_retry")
