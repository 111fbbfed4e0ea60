"""Key Lifecycle - Rotation Engine.

Rotation policy and metadata bookkeeping for one key namespace. Every
query re-reads the store, so several schedulers and restarted processes
agree on rotation state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from .client import SecretStoreClient
from .clock import Clock, format_timestamp, parse_timestamp, utcnow
from .config import RotationConfig, validate_grace_period, validate_rotation_period
from .exceptions import SecretNotFoundError, StoreError
from .result import Lookup

logger = logging.getLogger(__name__)

METADATA_FOLDER = "metadata"


@dataclass
class RotationMetadata:
    """Rotation bookkeeping persisted next to each key.

    ``next_rotation_due`` is always ``last_rotated + rotation_period_days``.
    """

    key_name: str
    last_rotated: datetime
    rotation_version: int
    next_rotation_due: datetime

    def to_store(self) -> dict:
        return {
            "last_rotated": format_timestamp(self.last_rotated),
            "rotation_version": self.rotation_version,
            "next_rotation_due": format_timestamp(self.next_rotation_due),
        }


@dataclass(frozen=True)
class RotationStatus:
    """Point-in-time rotation state of a key. Version 0 means never rotated."""

    last_rotated: Optional[datetime] = None
    version: int = 0


NEVER_ROTATED = RotationStatus()


class RotationEngine:
    """Writes new key material and stamps rotation metadata.

    Key material for ``name`` lives at ``{secret_path}/{name}``; its
    metadata at ``{secret_path}/metadata/{name}``.
    """

    def __init__(
        self,
        client: SecretStoreClient,
        secret_path: str,
        mount_point: str = "secret",
        config: Optional[RotationConfig] = None,
        clock: Clock = utcnow,
    ):
        self.client = client
        self.secret_path = secret_path.strip("/")
        self.mount_point = mount_point
        self._config = config or RotationConfig()
        self._clock = clock

    # ── Paths ─────────────────────────────────────────────────────────

    def key_path(self, key_name: str) -> str:
        return f"{self.secret_path}/{key_name}"

    def metadata_path(self, key_name: str) -> str:
        return f"{self.secret_path}/{METADATA_FOLDER}/{key_name}"

    # ── Rotation ──────────────────────────────────────────────────────

    def rotate_key(self, key_name: str, new_material: str) -> bool:
        """Write new material then updated metadata.

        Returns False if either write fails. A False result means rotation
        state is unknown: the key value may already have been replaced
        without its metadata being stamped.
        """
        return self.rotate_key_detailed(key_name, new_material) is not None

    def rotate_key_detailed(self, key_name: str, new_material: str) -> Optional[RotationMetadata]:
        """Rotate a key and return the metadata written, or None on failure."""
        previous = self.fetch_rotation_status(key_name)
        if previous.is_error:
            # Unknown prior version; writing now could move the counter backwards.
            logger.error("Not rotating key %s: rotation metadata unreadable", key_name)
            return None

        now = self._clock()
        metadata = RotationMetadata(
            key_name=key_name,
            last_rotated=now,
            rotation_version=previous.value_or(NEVER_ROTATED).version + 1,
            next_rotation_due=self.next_rotation_due(now),
        )
        try:
            self.client.write_secret(
                self.key_path(key_name),
                {"value": new_material},
                self.mount_point,
            )
            self.client.write_secret(
                self.metadata_path(key_name),
                metadata.to_store(),
                self.mount_point,
            )
        except StoreError as exc:
            logger.error("Failed to rotate key %s: %s", key_name, exc)
            return None

        logger.info(
            "Rotated key %s to rotation version %d",
            key_name,
            metadata.rotation_version,
        )
        return metadata

    # ── Status ────────────────────────────────────────────────────────

    def fetch_rotation_status(self, key_name: str) -> Lookup:
        """Read rotation state, keeping "never rotated" apart from "store unreachable"."""
        try:
            record = self.client.read_secret(self.metadata_path(key_name), self.mount_point)
        except SecretNotFoundError:
            return Lookup.absent()
        except StoreError as exc:
            logger.warning("Could not read rotation metadata for %s: %s", key_name, exc)
            return Lookup.failed(str(exc))

        if not record.data:
            return Lookup.absent()
        try:
            version = int(record.data.get("rotation_version") or 0)
        except (TypeError, ValueError):
            version = 0
        return Lookup.found(RotationStatus(
            last_rotated=parse_timestamp(record.data.get("last_rotated")),
            version=version,
        ))

    def get_rotation_status(self, key_name: str) -> RotationStatus:
        """Rotation state of a key; any failure reads as never rotated."""
        return self.fetch_rotation_status(key_name).value_or(NEVER_ROTATED)

    def get_rotation_metadata(self, key_name: str) -> Optional[RotationMetadata]:
        """Full metadata record, or None when absent or unreadable."""
        status = self.get_rotation_status(key_name)
        if status.last_rotated is None:
            return None
        return RotationMetadata(
            key_name=key_name,
            last_rotated=status.last_rotated,
            rotation_version=status.version,
            next_rotation_due=self.next_rotation_due(status.last_rotated),
        )

    def needs_rotation(self, key_name: str, now: Optional[datetime] = None) -> bool:
        """True when the key was never rotated or its period has elapsed.

        Errors err toward rotating.
        """
        try:
            status = self.get_rotation_status(key_name)
            if status.last_rotated is None:
                return True
            current = now or self._clock()
            return current >= self.next_rotation_due(status.last_rotated)
        except Exception as exc:
            logger.warning("Rotation check failed for %s, treating as due: %s", key_name, exc)
            return True

    def get_all_keys_needing_rotation(self) -> List[str]:
        """Due keys in listing order. A listing failure yields no keys."""
        try:
            names = self.client.list_secrets(self.secret_path, self.mount_point)
        except StoreError as exc:
            logger.error("Failed to list keys under %s: %s", self.secret_path, exc)
            return []

        now = self._clock()
        return [
            name for name in names
            if not name.endswith("/") and self.needs_rotation(name, now=now)
        ]

    # ── Policy ────────────────────────────────────────────────────────

    def next_rotation_due(self, last_rotated: datetime) -> datetime:
        return last_rotated + timedelta(days=self._config.rotation_period_days)

    def set_rotation_period(self, days: int) -> None:
        validate_rotation_period(days)
        self._config.rotation_period_days = days

    def set_grace_period(self, days: int) -> None:
        validate_grace_period(days)
        self._config.grace_period_days = days

    def get_rotation_config(self) -> RotationConfig:
        """Copy of the current rotation policy."""
        return RotationConfig(
            rotation_period_days=self._config.rotation_period_days,
            grace_period_days=self._config.grace_period_days,
        )
