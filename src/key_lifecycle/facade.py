"""Key Lifecycle - Secret Access Facade.

Path- and mount-aware layer over SecretStoreClient so the rest of the
package works with logical key names only. Failures are logged and
collapsed into safe defaults; the ``fetch_*`` variants return a Lookup
for callers that need to tell absence from failure.
"""

import logging
from typing import Any, Callable, List, Optional

from src.resilience import MaxRetriesExceeded, RetryConfig, call_with_retry

from .client import SecretStoreClient
from .clock import Clock, utcnow
from .config import RotationConfig, default_store_retry
from .exceptions import SecretNotFoundError, StoreError
from .result import Lookup
from .rotation import RotationEngine, RotationStatus

logger = logging.getLogger(__name__)


class SecretAccessFacade:
    """Logical-key view of one ``(secret_path, mount_point)`` namespace.

    Owns the RotationEngine for the same namespace.
    """

    def __init__(
        self,
        client: SecretStoreClient,
        secret_path: str,
        mount_point: str = "secret",
        rotation_config: Optional[RotationConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        clock: Clock = utcnow,
    ):
        self.client = client
        self.secret_path = secret_path.strip("/")
        self.mount_point = mount_point
        self._retry = retry_config or default_store_retry()
        self._rotation = RotationEngine(
            client,
            self.secret_path,
            mount_point,
            config=rotation_config,
            clock=clock,
        )

    @property
    def rotation(self) -> RotationEngine:
        return self._rotation

    def _path(self, key: str) -> str:
        return f"{self.secret_path}/{key}"

    def _call(self, func: Callable, *args: Any) -> Any:
        """Run a client call under the retry policy, unwrapping exhaustion."""
        try:
            return call_with_retry(func, *args, config=self._retry)
        except MaxRetriesExceeded as exc:
            raise exc.last_exception

    # ── Secrets ───────────────────────────────────────────────────────

    def fetch_secret(self, key: str) -> Lookup:
        """Read a secret's ``value`` field as FOUND, ABSENT or ERROR."""
        try:
            record = self._call(self.client.read_secret, self._path(key), self.mount_point)
        except SecretNotFoundError:
            return Lookup.absent()
        except StoreError as exc:
            logger.error("Failed to retrieve secret %s: %s", key, exc)
            return Lookup.failed(str(exc))
        value = record.value
        if not value:
            return Lookup.absent()
        return Lookup.found(value)

    def get_secret(self, key: str) -> Optional[str]:
        """Secret value, or None when absent or unreadable."""
        lookup = self.fetch_secret(key)
        if lookup.is_absent:
            logger.info("Secret %s not found", key)
        return lookup.value_or(None)

    def set_secret(self, key: str, value: str) -> bool:
        try:
            self._call(self.client.write_secret, self._path(key), {"value": value}, self.mount_point)
            return True
        except StoreError as exc:
            logger.error("Failed to set secret %s: %s", key, exc)
            return False

    def delete_secret(self, key: str) -> bool:
        try:
            self._call(self.client.delete_secret, self._path(key), self.mount_point)
            return True
        except StoreError as exc:
            logger.error("Failed to delete secret %s: %s", key, exc)
            return False

    def list_secrets(self) -> List[str]:
        """Key names in the namespace. Never raises."""
        try:
            return self._call(self.client.list_secrets, self.secret_path, self.mount_point) or []
        except StoreError as exc:
            logger.error("Failed to list secrets: %s", exc)
            return []

    # ── Rotation ──────────────────────────────────────────────────────

    def rotate_key(self, key_name: str, new_material: str) -> bool:
        return self._rotation.rotate_key(key_name, new_material)

    def get_rotation_status(self, key_name: str) -> RotationStatus:
        return self._rotation.get_rotation_status(key_name)

    def fetch_rotation_status(self, key_name: str) -> Lookup:
        return self._rotation.fetch_rotation_status(key_name)

    # ── Policies and mounts ───────────────────────────────────────────

    def get_policy(self, name: str) -> Optional[str]:
        try:
            return self.client.read_policy(name)
        except StoreError as exc:
            logger.error("Failed to retrieve policy %s: %s", name, exc)
            return None

    def create_policy(self, name: str, document: str) -> bool:
        try:
            self.client.create_policy(name, document)
            return True
        except StoreError as exc:
            logger.error("Failed to create policy %s: %s", name, exc)
            return False

    def ensure_secrets_engine(self, engine_type: str = "kv-v2") -> bool:
        """Mount a secrets engine at this facade's mount point."""
        try:
            self.client.enable_secrets_engine(engine_type, self.mount_point)
            logger.info("Enabled %s secrets engine at %s", engine_type, self.mount_point)
            return True
        except StoreError as exc:
            logger.error("Failed to enable secrets engine at %s: %s", self.mount_point, exc)
            return False

    # ── Health ────────────────────────────────────────────────────────

    def is_healthy(self) -> bool:
        return self.client.health_check()
