"""Configuration for retry behaviour against the secret store."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Type


class RetryStrategy(str, Enum):
    """Retry backoff strategies."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


# ── Default Constants ────────────────────────────────────────────────

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 0.2  # seconds
DEFAULT_MAX_DELAY = 2.0  # seconds
DEFAULT_JITTER_MAX = 0.1  # seconds


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry logic.

    ``max_retries`` counts retries after the first attempt, so the wrapped
    call runs at most ``max_retries + 1`` times.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter_max: float = DEFAULT_JITTER_MAX
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
    )

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter_max < 0:
            raise ValueError("retry delays must be >= 0")


NO_RETRY = RetryConfig(max_retries=0, base_delay=0.0, max_delay=0.0, jitter_max=0.0)
