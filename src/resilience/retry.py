"""Retry with exponential backoff.

Provides a decorator and a call helper for retrying transient store
failures with configurable backoff strategies and jitter.
"""

import functools
import logging
import random
import time
from typing import Any, Callable, Optional

from .config import RetryConfig, RetryStrategy

logger = logging.getLogger(__name__)


class MaxRetriesExceeded(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(self, attempts: int, last_exception: Exception):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"Max retries ({attempts}) exceeded. "
            f"Last error: {last_exception}"
        )


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    """Compute the delay for the given attempt number.

    Args:
        attempt: Zero-based attempt index (0 = first retry).
        config: Retry configuration.

    Returns:
        Delay in seconds, capped at max_delay.
    """
    if config.strategy == RetryStrategy.EXPONENTIAL:
        delay = config.base_delay * (2 ** attempt)
    elif config.strategy == RetryStrategy.LINEAR:
        delay = config.base_delay * (attempt + 1)
    else:  # CONSTANT
        delay = config.base_delay

    jitter = random.uniform(0, config.jitter_max) if config.jitter_max > 0 else 0.0
    return min(delay + jitter, config.max_delay)


def retry(config: Optional[RetryConfig] = None, sleep: Callable[[float], None] = time.sleep) -> Callable:
    """Decorator that retries a function on retryable failures with backoff.

    Exceptions not listed in ``config.retryable_exceptions`` propagate
    immediately. Once retries are exhausted, MaxRetriesExceeded is raised
    carrying the last exception.

    Usage:
        @retry(RetryConfig(max_retries=3))
        def read_from_store():
            ...
    """
    cfg = config or RetryConfig()

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exc: Optional[Exception] = None
            for attempt in range(cfg.max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except cfg.retryable_exceptions as exc:
                    last_exc = exc
                    if attempt < cfg.max_retries:
                        delay = _compute_delay(attempt, cfg)
                        logger.warning(
                            "Retry %d/%d for %s after %.2fs: %s",
                            attempt + 1,
                            cfg.max_retries,
                            getattr(func, "__name__", repr(func)),
                            delay,
                            exc,
                        )
                        sleep(delay)
                    elif cfg.max_retries > 0:
                        logger.error(
                            "All %d retries exhausted for %s: %s",
                            cfg.max_retries,
                            getattr(func, "__name__", repr(func)),
                            exc,
                        )
            raise MaxRetriesExceeded(cfg.max_retries, last_exc)  # type: ignore[arg-type]

        wrapper._retry_config = cfg  # type: ignore[attr-defined]
        return wrapper

    return decorator


def call_with_retry(
    func: Callable,
    *args: Any,
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> Any:
    """Invoke ``func`` once under the retry policy without decorating it."""
    return retry(config, sleep=sleep)(func)(*args, **kwargs)
