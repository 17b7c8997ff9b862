"""Retry utilities using tenacity."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Callable, Type, TypeVar, ParamSpec

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from core.config import get_settings
from core.exceptions import RateLimitError, ServiceUnavailableError
from core.logging_config import get_logger

LOGGER = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Transient failures worth another attempt against geocoder / preview APIs
NETWORK_ERRORS: tuple[Type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    RateLimitError,
    ServiceUnavailableError,
)


def with_retry(
    max_attempts: int | None = None,
    max_delay_seconds: float = 30,
    retry_exceptions: tuple[Type[Exception], ...] = NETWORK_ERRORS,
    exponential_base: float = 0.5,
    min_wait: float = 0.5,
    max_wait: float = 5,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to add retry logic to a function.

    Args:
        max_attempts: Maximum number of attempts (EXTERNAL_MAX_RETRIES if None).
        max_delay_seconds: Maximum total time to spend retrying.
        retry_exceptions: Tuple of exception types to retry on.
        exponential_base: Multiplier for exponential backoff.
        min_wait: Minimum wait time between retries.
        max_wait: Maximum wait time between retries.

    Example:
        @with_retry(retry_exceptions=(httpx.TransportError,))
        def call_external_api():
            ...
    """
    attempts = max_attempts if max_attempts is not None else get_settings().external_max_retries

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @retry(
            retry=retry_if_exception_type(retry_exceptions),
            stop=stop_after_attempt(attempts) | stop_after_delay(max_delay_seconds),
            wait=wait_exponential(multiplier=exponential_base, min=min_wait, max=max_wait),
            before_sleep=before_sleep_log(LOGGER, log_level=logging.INFO),
            reraise=True,
        )
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return func(*args, **kwargs)

        return wrapper

    return decorator


__all__ = ["with_retry", "NETWORK_ERRORS"]
