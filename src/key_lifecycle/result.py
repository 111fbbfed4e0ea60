"""Key Lifecycle - Explicit lookup results.

Separates "value present", "value genuinely absent" and "could not ask"
so each caller can pick fail-open or fail-closed behaviour.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class LookupStatus(str, Enum):
    """Outcome of a store lookup."""
    FOUND = "found"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Result of a lookup that may be present, absent or failed."""

    status: LookupStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, value: Any) -> "Lookup":
        return cls(status=LookupStatus.FOUND, value=value)

    @classmethod
    def absent(cls) -> "Lookup":
        return cls(status=LookupStatus.ABSENT)

    @classmethod
    def failed(cls, reason: str) -> "Lookup":
        return cls(status=LookupStatus.ERROR, error=reason)

    @property
    def is_found(self) -> bool:
        return self.status == LookupStatus.FOUND

    @property
    def is_absent(self) -> bool:
        return self.status == LookupStatus.ABSENT

    @property
    def is_error(self) -> bool:
        return self.status == LookupStatus.ERROR

    def value_or(self, default: Any) -> Any:
        """Return the value when found, otherwise ``default``."""
        return self.value if self.is_found else default
