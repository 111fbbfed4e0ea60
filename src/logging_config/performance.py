"""Performance Logging.

Decorator for timing store-bound operations and logging slow ones.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator that logs function execution time.

    Logs all calls at DEBUG level and slow calls (above threshold) at WARNING.
    Arguments are never logged: they may carry key material.

    Args:
        threshold_ms: Slow operation threshold in milliseconds.
                     Defaults to config.slow_threshold_ms.
        logger_name: Custom logger name. Defaults to function's module.

    Example:
        @log_performance(threshold_ms=5000)
        def run_pass(self):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        _logger = logging.getLogger(logger_name or func.__module__)
        func_name = f"{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start) * 1000
                _logger.error(
                    f"{func_name} failed after {duration_ms:.1f}ms: {type(exc).__name__}",
                    extra={"duration_ms": round(duration_ms, 2)},
                )
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                extra = {"duration_ms": round(duration_ms, 2)}
                if duration_ms >= threshold_ms:
                    _logger.warning(
                        f"Slow operation: {func_name} took {duration_ms:.1f}ms",
                        extra=extra,
                    )
                else:
                    _logger.debug(
                        f"{func_name} completed in {duration_ms:.1f}ms",
                        extra=extra,
                    )

        return wrapper

    return decorator
