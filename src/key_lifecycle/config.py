"""Key Lifecycle - Configuration."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from src.resilience import RetryConfig

from .exceptions import ConfigurationError, TransportError


class Capability(str, Enum):
    """Capabilities a secret store ACL policy can grant on a path."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


# ── Default Constants ────────────────────────────────────────────────

DEFAULT_STORE_URL = "http://localhost:8200"
DEFAULT_SECRET_PATH = "signer/keys"
DEFAULT_MOUNT_POINT = "secret"
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_ROTATION_PERIOD_DAYS = 30
DEFAULT_GRACE_PERIOD_DAYS = 7
DEFAULT_CHECK_INTERVAL_MS = 24 * 60 * 60 * 1000
DEFAULT_MAX_KEYS_PER_BATCH = 5
DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 30.0
DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_APP_NAME = "signer"
DEFAULT_AGENT_KEY_NAME = "hot-wallet"


def default_store_retry() -> RetryConfig:
    """Retry policy for facade reads and writes: transport failures only."""
    return RetryConfig(retryable_exceptions=(TransportError,))


@dataclass(frozen=True)
class StoreConfig:
    """Connection settings for the secret store. Immutable."""

    base_url: str = DEFAULT_STORE_URL
    token: str = ""
    namespace: Optional[str] = None
    timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self):
        if not self.base_url:
            raise ConfigurationError("base_url is required")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be > 0")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


@dataclass
class RotationConfig:
    """Rotation cadence for one key namespace."""

    rotation_period_days: int = DEFAULT_ROTATION_PERIOD_DAYS
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS

    def __post_init__(self):
        validate_rotation_period(self.rotation_period_days)
        validate_grace_period(self.grace_period_days)


def validate_rotation_period(days: int) -> None:
    if days < 1:
        raise ConfigurationError(f"rotation_period_days must be >= 1, got {days}")


def validate_grace_period(days: int) -> None:
    if days < 0:
        raise ConfigurationError(f"grace_period_days must be >= 0, got {days}")


@dataclass
class RotationJobConfig:
    """Settings for the background rotation driver."""

    check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS
    max_keys_per_batch: int = DEFAULT_MAX_KEYS_PER_BATCH

    def __post_init__(self):
        if self.check_interval_ms <= 0:
            raise ConfigurationError("check_interval_ms must be > 0")
        if self.max_keys_per_batch < 1:
            raise ConfigurationError("max_keys_per_batch must be >= 1")


@dataclass
class KeyAccessConfig:
    """Signing policy registered for one key name."""

    key_name: str
    require_rotation_check: bool = True
    max_rotation_grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS

    def __post_init__(self):
        if self.max_rotation_grace_period_days < 0:
            raise ConfigurationError("max_rotation_grace_period_days must be >= 0")


@dataclass
class LifecycleConfig:
    """Complete configuration surface, validated once and injected."""

    store: StoreConfig = field(default_factory=StoreConfig)
    secret_path: str = DEFAULT_SECRET_PATH
    mount_point: str = DEFAULT_MOUNT_POINT
    rotation: RotationConfig = field(default_factory=RotationConfig)
    job: RotationJobConfig = field(default_factory=RotationJobConfig)
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    retry: RetryConfig = field(default_factory=default_store_retry)
    app_name: str = DEFAULT_APP_NAME
    agent_key_name: str = DEFAULT_AGENT_KEY_NAME

    def __post_init__(self):
        self.secret_path = self.secret_path.strip("/")
        self.mount_point = self.mount_point.strip("/")
        if not self.secret_path:
            raise ConfigurationError("secret_path is required")
        if not self.mount_point:
            raise ConfigurationError("mount_point is required")
        if self.cache_ttl_ms < 0:
            raise ConfigurationError("cache_ttl_ms must be >= 0")
