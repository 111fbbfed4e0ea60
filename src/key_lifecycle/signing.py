"""Key Lifecycle - Signing Key Cache.

Per-process cache of materialized signing keys fronting the
SecretAccessFacade. A key whose rotation grace period has lapsed is
never handed out, whether it comes from the store or from the cache.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .clock import Clock, utcnow
from .config import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_GRACE_PERIOD_DAYS,
    KeyAccessConfig,
    validate_grace_period,
)
from .exceptions import (
    ConfigurationError,
    KeyPolicyViolationError,
    MalformedKeyMaterialError,
    SigningKeyUnavailableError,
)
from .facade import SecretAccessFacade
from .material import parse_key_material

logger = logging.getLogger(__name__)


class SigningKey:
    """An Ed25519 signing key materialized from stored seed material."""

    def __init__(self, key_name: str, private_key: Ed25519PrivateKey):
        self.key_name = key_name
        self._private_key = private_key
        self._public_bytes = private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )

    @classmethod
    def from_material(cls, key_name: str, material: str) -> "SigningKey":
        return cls(key_name, parse_key_material(material))

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_bytes

    @property
    def public_key_hex(self) -> str:
        return self._public_bytes.hex()

    def sign(self, payload: bytes) -> bytes:
        return self._private_key.sign(payload)

    def __repr__(self) -> str:
        return f"SigningKey(key_name={self.key_name!r}, public_key={self.public_key_hex[:16]}...)"


@dataclass(frozen=True)
class SignedPayload:
    """An opaque payload together with its detached signature."""

    key_name: str
    payload: bytes
    signature: bytes
    public_key: str

    @property
    def signature_hex(self) -> str:
        return self.signature.hex()


@dataclass
class CachedKeyEntry:
    """Materialized key with the deadline it was validated against."""

    key: SigningKey
    cached_at: datetime
    grace_deadline: Optional[datetime] = None


class SigningKeyCache:
    """Serves signing keys, enforcing the rotation grace period.

    Lookup order for ``get_signing_key``:
    1. A cache entry younger than the TTL is returned without a store
       call, unless its recorded grace deadline has passed.
    2. Unknown names are registered with the default policy (logged).
    3. If the policy requires it, rotation status is checked; a key last
       rotated more than ``max_rotation_grace_period_days`` ago raises
       KeyPolicyViolationError.
    4. Material is fetched, parsed and cached. Absent or malformed
       material yields None and is never cached.

    Refills are serialized per key name so concurrent misses make one
    store round trip.
    """

    def __init__(
        self,
        facade: SecretAccessFacade,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Clock = utcnow,
        default_grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
    ):
        validate_grace_period(default_grace_period_days)
        self.facade = facade
        self.default_grace_period_days = default_grace_period_days
        self._ttl = timedelta(milliseconds=cache_ttl_ms)
        self._clock = clock
        self._configs: Dict[str, KeyAccessConfig] = {}
        self._cache: Dict[str, CachedKeyEntry] = {}
        self._refill_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._violations = 0

    # ── Registration ──────────────────────────────────────────────────

    def register(
        self,
        key_name: str,
        require_rotation_check: bool = True,
        max_rotation_grace_period_days: Optional[int] = None,
    ) -> KeyAccessConfig:
        """Declare the signing policy for a key name. Last write wins.

        The grace period defaults to the cache-wide ``default_grace_period_days``.
        """
        if max_rotation_grace_period_days is None:
            max_rotation_grace_period_days = self.default_grace_period_days
        config = KeyAccessConfig(
            key_name=key_name,
            require_rotation_check=require_rotation_check,
            max_rotation_grace_period_days=max_rotation_grace_period_days,
        )
        with self._lock:
            self._configs[key_name] = config
        return config

    def get_registration(self, key_name: str) -> Optional[KeyAccessConfig]:
        with self._lock:
            return self._configs.get(key_name)

    # ── Key retrieval ─────────────────────────────────────────────────

    def get_signing_key(self, key_name: str) -> Optional[SigningKey]:
        """Return a usable signing key, or None when none is available.

        Raises:
            KeyPolicyViolationError: the key is past its rotation grace period.
        """
        entry = self._cached(key_name)
        if entry is not None:
            return entry.key

        with self._refill_lock(key_name):
            entry = self._cached(key_name)
            if entry is not None:
                return entry.key
            return self._load(key_name)

    def _cached(self, key_name: str) -> Optional[CachedKeyEntry]:
        now = self._clock()
        with self._lock:
            entry = self._cache.get(key_name)
            if entry is None:
                return None
            if now - entry.cached_at >= self._ttl:
                del self._cache[key_name]
                return None
            if entry.grace_deadline is not None and now > entry.grace_deadline:
                del self._cache[key_name]
                self._violations += 1
                logger.error(
                    "Cached key %s exceeded rotation grace period",
                    key_name,
                    extra={"key_name": key_name},
                )
                raise KeyPolicyViolationError(key_name)
            self._hits += 1
            return entry

    def _refill_lock(self, key_name: str) -> threading.Lock:
        with self._lock:
            lock = self._refill_locks.get(key_name)
            if lock is None:
                lock = self._refill_locks[key_name] = threading.Lock()
            return lock

    def _load(self, key_name: str) -> Optional[SigningKey]:
        with self._lock:
            self._misses += 1
        config = self.get_registration(key_name)
        if config is None:
            logger.warning("Key %s not registered, registering with default policy", key_name)
            config = self.register(key_name)

        grace_deadline = None
        if config.require_rotation_check:
            status = self.facade.fetch_rotation_status(key_name)
            if status.is_error:
                logger.error(
                    "Cannot verify rotation status for %s, not serving key: %s",
                    key_name,
                    status.error,
                )
                return None
            last_rotated = status.value.last_rotated if status.is_found else None
            if last_rotated is not None:
                grace_deadline = last_rotated + timedelta(
                    days=config.max_rotation_grace_period_days
                )
                if self._clock() > grace_deadline:
                    with self._lock:
                        self._violations += 1
                    logger.error(
                        "Key %s exceeded rotation grace period (last rotated %s)",
                        key_name,
                        last_rotated.isoformat(),
                        extra={"key_name": key_name},
                    )
                    raise KeyPolicyViolationError(key_name)

        lookup = self.facade.fetch_secret(key_name)
        if not lookup.is_found:
            logger.error(
                "Failed to retrieve key %s from secret store (%s)",
                key_name,
                lookup.status.value,
            )
            return None

        try:
            key = SigningKey.from_material(key_name, lookup.value)
        except MalformedKeyMaterialError as exc:
            logger.error(
                "Invalid key material for %s: %s", key_name, exc, extra={"key_name": key_name}
            )
            return None

        with self._lock:
            self._cache[key_name] = CachedKeyEntry(
                key=key,
                cached_at=self._clock(),
                grace_deadline=grace_deadline,
            )
        return key

    # ── Signing ───────────────────────────────────────────────────────

    def sign(self, key_name: str, payload: bytes) -> SignedPayload:
        """Sign an opaque payload with the named key.

        Raises:
            KeyPolicyViolationError: the key is past its rotation grace period.
            SigningKeyUnavailableError: no key could be obtained.
        """
        key = self.get_signing_key(key_name)
        if key is None:
            raise SigningKeyUnavailableError(key_name)
        return SignedPayload(
            key_name=key_name,
            payload=payload,
            signature=key.sign(payload),
            public_key=key.public_key_hex,
        )

    # ── Cache management ──────────────────────────────────────────────

    def clear_cache(self, key_name: Optional[str] = None) -> None:
        """Drop one entry, or every entry when no name is given."""
        with self._lock:
            if key_name is None:
                self._cache.clear()
            else:
                self._cache.pop(key_name, None)

    def set_cache_ttl(self, ttl_ms: int) -> None:
        if ttl_ms < 0:
            raise ConfigurationError("ttl_ms must be >= 0")
        self._ttl = timedelta(milliseconds=ttl_ms)

    def health_check(self) -> bool:
        return self.facade.is_healthy()

    def get_cache_stats(self) -> Dict[str, Any]:
        """Cache performance counters for monitoring."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "cache_size": len(self._cache),
                "registered_keys": len(self._configs),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
                "grace_violations": self._violations,
                "ttl_ms": int(self._ttl.total_seconds() * 1000),
            }
