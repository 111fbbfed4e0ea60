"""Resilience Patterns.

Retry with jittered backoff for transient failures talking to the
secret store.
"""

from .config import (
    NO_RETRY,
    RetryConfig,
    RetryStrategy,
)
from .retry import (
    MaxRetriesExceeded,
    call_with_retry,
    retry,
)

__all__ = [
    # Config
    "NO_RETRY",
    "RetryConfig",
    "RetryStrategy",
    # Retry
    "MaxRetriesExceeded",
    "call_with_retry",
    "retry",
]
