"""Retry utilities for network calls.

Implements exponential backoff with jitter for transient failures, and
maps httpx failures onto the podshelf error hierarchy.
"""

import inspect
import logging
from collections.abc import Callable
from functools import wraps

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from podshelf.utils.errors import (
    AuthenticationError,
    NetworkConnectionError,
    NetworkError,
    NetworkTimeoutError,
    PodshelfError,
    RateLimitError,
    RequestRejectedError,
    ServerError,
)

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        max_wait_seconds: float = 30,
        min_wait_seconds: float = 1,
        jitter: bool = True,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including initial)
            max_wait_seconds: Maximum wait time between retries
            min_wait_seconds: Minimum wait time between retries
            jitter: Whether to add jitter to wait times
        """
        self.max_attempts = max_attempts
        self.max_wait_seconds = max_wait_seconds
        self.min_wait_seconds = min_wait_seconds
        self.jitter = jitter


DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=30,
    min_wait_seconds=1,
    jitter=True,
)

# Fast configuration for testing (minimal delays)
TEST_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=0.1,
    min_wait_seconds=0.01,
    jitter=False,
)

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    NetworkConnectionError,
    NetworkTimeoutError,
    ServerError,
    RateLimitError,
)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging.

    Args:
        retry_state: Tenacity retry state
    """
    if retry_state.outcome and retry_state.outcome.failed:
        exception = retry_state.outcome.exception()
        logger.warning(
            "Retry attempt %d failed: %s: %s",
            retry_state.attempt_number,
            type(exception).__name__,
            exception,
        )


def with_retry(
    config: RetryConfig | None = None,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable:
    """Decorator for adding retry logic with exponential backoff.

    Works on both plain and ``async`` functions. Cancellation is never
    retried since ``asyncio.CancelledError`` is not an ``Exception``.

    Usage:
        @with_retry()
        async def fetch():
            ...

        @with_retry(config=RetryConfig(max_attempts=5), retry_on=(ServerError,))
        def call():
            ...

    Args:
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)
        retry_on: Exception types to retry on (defaults to RETRYABLE_ERRORS)

    Returns:
        Decorated function with retry logic
    """
    config = config or DEFAULT_RETRY_CONFIG
    retry_on = retry_on or RETRYABLE_ERRORS

    def decorator(func: Callable) -> Callable:
        retry_decorator = retry(
            stop=stop_after_attempt(config.max_attempts),
            wait=wait_exponential_jitter(
                initial=config.min_wait_seconds,
                max=config.max_wait_seconds,
                jitter=config.max_wait_seconds if config.jitter else 0,
            ),
            retry=retry_if_exception_type(retry_on),
            before_sleep=log_retry_attempt,
            reraise=True,
        )
        retrying = retry_decorator(func)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await retrying(*args, **kwargs)
                except Exception as e:
                    logger.error(
                        "%s failed after %d attempts: %s: %s",
                        func.__name__,
                        config.max_attempts,
                        type(e).__name__,
                        e,
                    )
                    raise

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return retrying(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "%s failed after %d attempts: %s: %s",
                    func.__name__,
                    config.max_attempts,
                    type(e).__name__,
                    e,
                )
                raise

        return wrapper

    return decorator


def with_network_retry(config: RetryConfig | None = None) -> Callable:
    """Retry decorator for network calls (timeouts, connection and server errors)."""
    return with_retry(config=config, retry_on=RETRYABLE_ERRORS)


def classify_http_error(status_code: int, error_message: str = "") -> PodshelfError:
    """Classify an HTTP error status into retryable or non-retryable.

    Args:
        status_code: HTTP status code
        error_message: Error message from the server or client

    Returns:
        Appropriate exception instance
    """
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {error_message}")

    if 500 <= status_code < 600:
        return ServerError(f"Server error (HTTP {status_code}): {error_message}")

    if status_code == 408:
        return NetworkTimeoutError(f"Request timeout: {error_message}")

    if status_code in (401, 403):
        return AuthenticationError(
            f"Authentication failed (HTTP {status_code}): {error_message}"
        )

    return RequestRejectedError(f"Request rejected (HTTP {status_code}): {error_message}")


def classify_httpx_error(error: httpx.HTTPError, url: str) -> PodshelfError:
    """Map an httpx exception onto the podshelf error hierarchy.

    Args:
        error: Exception raised by httpx
        url: URL being requested (for the message)

    Returns:
        Classified exception, ready to be raised ``from error``
    """
    if isinstance(error, httpx.HTTPStatusError):
        return classify_http_error(error.response.status_code, f"{url}: {error}")
    if isinstance(error, httpx.TimeoutException):
        return NetworkTimeoutError(f"Timed out requesting {url}: {error}")
    if isinstance(error, httpx.TransportError):
        return NetworkConnectionError(f"Could not reach {url}: {error}")
    return NetworkError(f"Request to {url} failed: {error}")
