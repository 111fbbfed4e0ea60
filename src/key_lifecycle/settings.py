"""Environment-driven settings for the key lifecycle service.

Uses pydantic-settings to load from environment variables (prefixed
KEYVAULT_) and converts them into an explicit LifecycleConfig. This is
the only place the environment is read.
"""

from typing import Optional

from pydantic_settings import BaseSettings

from .config import (
    DEFAULT_AGENT_KEY_NAME,
    DEFAULT_APP_NAME,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_CHECK_INTERVAL_MS,
    DEFAULT_GRACE_PERIOD_DAYS,
    DEFAULT_MAX_KEYS_PER_BATCH,
    DEFAULT_MOUNT_POINT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_ROTATION_PERIOD_DAYS,
    DEFAULT_SECRET_PATH,
    DEFAULT_STORE_URL,
    LifecycleConfig,
    RotationConfig,
    RotationJobConfig,
    StoreConfig,
)


class KeyLifecycleSettings(BaseSettings):
    """Key lifecycle settings loaded from environment variables."""

    # --- Secret store connection ---
    addr: str = DEFAULT_STORE_URL
    token: str = ""
    namespace: Optional[str] = None
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT

    # --- Namespace ---
    secret_path: str = DEFAULT_SECRET_PATH
    mount_point: str = DEFAULT_MOUNT_POINT

    # --- Rotation ---
    check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS
    rotation_period_days: int = DEFAULT_ROTATION_PERIOD_DAYS
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
    max_keys_per_batch: int = DEFAULT_MAX_KEYS_PER_BATCH

    # --- Signing cache ---
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS

    # --- Provisioning ---
    app_name: str = DEFAULT_APP_NAME
    agent_key_name: str = DEFAULT_AGENT_KEY_NAME

    model_config = {
        "env_prefix": "KEYVAULT_",
        "env_file": ".env",
        "extra": "ignore",
    }

    def to_config(self) -> LifecycleConfig:
        """Build a validated LifecycleConfig from these settings."""
        return LifecycleConfig(
            store=StoreConfig(
                base_url=self.addr,
                token=self.token,
                namespace=self.namespace or None,
                timeout_seconds=self.request_timeout_seconds,
            ),
            secret_path=self.secret_path,
            mount_point=self.mount_point,
            rotation=RotationConfig(
                rotation_period_days=self.rotation_period_days,
                grace_period_days=self.grace_period_days,
            ),
            job=RotationJobConfig(
                check_interval_ms=self.check_interval_ms,
                max_keys_per_batch=self.max_keys_per_batch,
            ),
            cache_ttl_ms=self.cache_ttl_ms,
            app_name=self.app_name,
            agent_key_name=self.agent_key_name,
        )
