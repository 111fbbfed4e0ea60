"""Operation Context Management.

Thread-safe logging context using contextvars for binding an operation
ID (one rotation pass, one provisioning run) and the key being worked on
to every log entry emitted inside it.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")
_key_name_var: ContextVar[str] = ContextVar("key_name", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_operation_id() -> str:
    """Generate a short unique operation ID."""
    return uuid.uuid4().hex[:16]


def get_operation_id() -> str:
    """Get the current operation ID from context."""
    return _operation_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    op_id = _operation_id_var.get()
    if op_id:
        ctx["operation_id"] = op_id
    key_name = _key_name_var.get()
    if key_name:
        ctx["key_name"] = key_name
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class OperationContext:
    """Context manager binding an operation ID to all log entries within it.

    Restores the previous context on exit, so contexts nest.

    Example:
        with OperationContext(key_name="hot-wallet"):
            logger.info("checking keys")  # includes operation_id
    """

    operation_id: str = ""
    key_name: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.operation_id:
            self.operation_id = generate_operation_id()

    def __enter__(self) -> "OperationContext":
        self._tokens = [
            (_operation_id_var, _operation_id_var.set(self.operation_id)),
            (_key_name_var, _key_name_var.set(self.key_name)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
