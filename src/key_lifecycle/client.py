"""Secret Store Client.

Thin binding over hvac to the secret store's request/response API: versioned
key-value secrets, ACL policies and AppRole machine identities.
No business logic and no retries; non-success responses surface as
typed StoreError subclasses carrying the store's status text.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from http import HTTPStatus
from typing import Any, Dict, Iterator, List, Optional
import logging

import hvac
import requests
from hvac import exceptions as hvac_exceptions

from .clock import parse_timestamp
from .config import StoreConfig
from .exceptions import ForbiddenError, SecretNotFoundError, StoreError, TransportError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# Response Models
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class SecretMetadata:
    """Version metadata the store attaches to every secret write."""
    version: int = 0
    created_time: Optional[datetime] = None
    destruction_time: Optional[datetime] = None
    deletion_time: Optional[datetime] = None
    destroyed: bool = False
    expired: bool = False

    @classmethod
    def from_api(cls, data: Optional[dict]) -> "SecretMetadata":
        data = data or {}
        destruction = parse_timestamp(data.get("destruction_time"))
        return cls(
            version=int(data.get("version") or 0),
            created_time=parse_timestamp(data.get("created_time")),
            destruction_time=destruction,
            deletion_time=parse_timestamp(data.get("deletion_time")),
            destroyed=bool(data.get("destroyed", False)),
            expired=bool(data.get("expired", destruction is not None)),
        )


@dataclass
class SecretRecord:
    """One version of a secret as read from the store."""
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: SecretMetadata = field(default_factory=SecretMetadata)

    @property
    def value(self) -> Optional[str]:
        """Shorthand for the conventional ``value`` field."""
        value = self.data.get("value")
        return None if value is None else str(value)

    @classmethod
    def from_api(cls, payload: dict) -> "SecretRecord":
        body = payload.get("data") or {}
        return cls(
            data=dict(body.get("data") or {}),
            metadata=SecretMetadata.from_api(body.get("metadata")),
        )


@dataclass
class AppRoleCredential:
    """Role ID / secret ID pair for a machine identity.

    Returned once at issuance and never cached by this package.
    """
    role_id: str
    secret_id: str
    ttl: str = "1h"
    max_ttl: str = "24h"
    accessor: str = ""

    def __repr__(self) -> str:
        return (
            f"AppRoleCredential(role_id={self.role_id!r}, secret_id='***', "
            f"ttl={self.ttl!r}, max_ttl={self.max_ttl!r})"
        )


# ═══════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════


# hvac raises one exception class per status; StoreError keeps the code
_STATUS_BY_ERROR = {
    hvac_exceptions.InvalidRequest: 400,
    hvac_exceptions.Unauthorized: 401,
    hvac_exceptions.Forbidden: 403,
    hvac_exceptions.InvalidPath: 404,
    hvac_exceptions.RateLimitExceeded: 429,
    hvac_exceptions.InternalServerError: 500,
    hvac_exceptions.VaultNotInitialized: 501,
    hvac_exceptions.BadGateway: 502,
    hvac_exceptions.VaultDown: 503,
}


class SecretStoreClient:
    """Synchronous client for the secret store, built on ``hvac.Client``.

    hvac sends the token header, the namespace header when configured,
    and the configured timeout on every request. Its typed exceptions
    are translated into the StoreError taxonomy here so nothing above
    this layer imports hvac.

    Example:
        with SecretStoreClient(StoreConfig(base_url="http://vault:8200", token="...")) as client:
            record = client.read_secret("signer/keys/hot-wallet")
            print(record.metadata.version)
    """

    def __init__(
        self,
        config: StoreConfig,
        session: Optional[requests.Session] = None,
    ):
        self._config = config
        self._owns_session = session is None
        self._vault = hvac.Client(
            url=config.base_url,
            token=config.token,
            namespace=config.namespace,
            timeout=config.timeout_seconds,
            session=session,
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    def close(self) -> None:
        """Release the connection pool if this client created it."""
        if self._owns_session:
            self._vault.adapter.close()

    def __enter__(self) -> "SecretStoreClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── Error translation ─────────────────────────────────────────────

    @contextmanager
    def _translate(self, action: str, not_found: bool = False) -> Iterator[None]:
        """Map hvac and network failures onto StoreError subclasses."""
        try:
            yield
        except hvac_exceptions.VaultError as exc:
            status = _STATUS_BY_ERROR.get(type(exc))
            reason = HTTPStatus(status).phrase if status else type(exc).__name__
            message = f"Failed to {action}: {reason}"
            if status:
                message = f"Failed to {action}: {status} {reason}"
            detail = ", ".join(str(e) for e in getattr(exc, "errors", None) or [])
            if detail:
                message = f"{message} ({detail})"
            if status == 404 and not_found:
                raise SecretNotFoundError(message, status_code=status, status_text=reason) from exc
            if status == 403:
                raise ForbiddenError(message, status_code=status, status_text=reason) from exc
            raise TransportError(message, status_code=status, status_text=reason) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Failed to {action}: {exc}") from exc

    @staticmethod
    def _data(payload: Any) -> dict:
        # hvac hands back parsed JSON for 200 responses and the raw response otherwise
        if not isinstance(payload, dict):
            return {}
        return payload.get("data") or {}

    # ── Health ────────────────────────────────────────────────────────

    def health_check(self) -> bool:
        """Query ``sys/health``. Never raises."""
        try:
            status = self._vault.sys.read_health_status(method="GET")
        except Exception as exc:
            logger.warning("Secret store health check failed: %s", exc)
            return False
        if isinstance(status, dict):
            return True
        return bool(getattr(status, "ok", False))

    # ── Key/value secrets ─────────────────────────────────────────────

    def read_secret(self, path: str, mount_point: str = "secret") -> SecretRecord:
        """Read the latest version of a secret."""
        with self._translate(f"read secret {path}", not_found=True):
            payload = self._vault.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=mount_point,
                raise_on_deleted_version=True,
            )
        return SecretRecord.from_api(payload if isinstance(payload, dict) else {})

    def write_secret(
        self,
        path: str,
        data: Dict[str, Any],
        mount_point: str = "secret",
    ) -> Optional[int]:
        """Write a new version of a secret. Returns the new version when reported."""
        with self._translate(f"write secret {path}"):
            payload = self._vault.secrets.kv.v2.create_or_update_secret(
                path=path,
                secret=data,
                mount_point=mount_point,
            )
        version = self._data(payload).get("version")
        return int(version) if version is not None else None

    def delete_secret(self, path: str, mount_point: str = "secret") -> None:
        """Soft-delete the latest version of a secret."""
        with self._translate(f"delete secret {path}"):
            self._vault.secrets.kv.v2.delete_latest_version_of_secret(
                path=path,
                mount_point=mount_point,
            )

    def list_secrets(self, path: str, mount_point: str = "secret") -> List[str]:
        """List key names under ``path``.

        Any non-success response yields an empty list: an absent folder
        is not exceptional. Network failures still raise TransportError.
        """
        try:
            with self._translate(f"list secrets under {path}"):
                payload = self._vault.secrets.kv.v2.list_secrets(
                    path=path,
                    mount_point=mount_point,
                )
        except StoreError as exc:
            if not isinstance(exc.__cause__, hvac_exceptions.VaultError):
                raise
            logger.debug("Listing %s returned %s", path, exc.status_code)
            return []
        return [str(k) for k in self._data(payload).get("keys") or []]

    # ── Policies ──────────────────────────────────────────────────────

    def read_policy(self, name: str) -> Optional[str]:
        """Fetch an ACL policy document, or None when it does not exist."""
        try:
            with self._translate(f"read policy {name}"):
                payload = self._vault.sys.read_acl_policy(name=name)
        except StoreError as exc:
            if not isinstance(exc.__cause__, hvac_exceptions.VaultError):
                raise
            return None
        return self._data(payload).get("policy") or None

    def create_policy(self, name: str, document: str) -> None:
        """Create or replace an ACL policy."""
        with self._translate(f"create policy {name}"):
            self._vault.adapter.post(
                f"/v1/sys/policies/acl/{name}",
                json={"name": name, "policy": document},
            )

    def enable_secrets_engine(
        self,
        engine_type: str,
        path: str,
        description: str = "Signing key storage",
    ) -> None:
        """Mount a secrets engine at ``path``."""
        with self._translate(f"enable secrets engine at {path}"):
            self._vault.sys.enable_secrets_engine(
                backend_type=engine_type,
                path=path,
                description=description,
            )

    # ── AppRole machine identities ────────────────────────────────────

    def create_app_role(
        self,
        role_name: str,
        policies: List[str],
        ttl: str = "1h",
        max_ttl: str = "24h",
    ) -> None:
        """Create a machine identity bound to ``policies``.

        Posted to ``sys/auth/approle/role/{name}`` directly; hvac's
        ``auth.approle.create_or_update_approle`` targets a different
        route and field names.
        """
        with self._translate(f"create AppRole {role_name}"):
            self._vault.adapter.post(
                f"/v1/sys/auth/approle/role/{role_name}",
                json={"policies": list(policies), "ttl": ttl, "max_ttl": max_ttl},
            )

    def issue_app_role_credentials(
        self,
        role_name: str,
        ttl: str = "1h",
        max_ttl: str = "24h",
    ) -> AppRoleCredential:
        """Fetch the role ID, then mint a secret ID.

        Either call failing fails the whole operation; no partial
        credential is ever returned.
        """
        action = f"get role ID for {role_name}"
        with self._translate(action):
            payload = self._vault.auth.approle.read_role_id(role_name=role_name)
        role_id = self._data(payload).get("role_id")
        if not role_id:
            raise TransportError(f"Failed to {action}: response carried no role_id")

        action = f"get secret ID for {role_name}"
        with self._translate(action):
            payload = self._vault.auth.approle.generate_secret_id(role_name=role_name)
        data = self._data(payload)
        secret_id = data.get("secret_id")
        if not secret_id:
            raise TransportError(f"Failed to {action}: response carried no secret_id")

        secret_ttl = data.get("secret_id_ttl")
        return AppRoleCredential(
            role_id=str(role_id),
            secret_id=str(secret_id),
            ttl=f"{secret_ttl}s" if secret_ttl else ttl,
            max_ttl=max_ttl,
            accessor=str(data.get("secret_id_accessor", "")),
        )
