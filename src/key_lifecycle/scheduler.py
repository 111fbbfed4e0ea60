"""Key Lifecycle - Rotation Scheduler.

Background driver that periodically asks a RotationEngine which keys
are due and rotates a bounded batch of them.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from src.logging_config import OperationContext, log_performance
from src.logging_config.context import get_operation_id

from .clock import Clock, utcnow
from .config import DEFAULT_SHUTDOWN_TIMEOUT_SECONDS, RotationJobConfig
from .material import generate_key_material
from .rotation import RotationEngine

logger = logging.getLogger(__name__)

RotationHook = Callable[[str], None]
FailureHook = Callable[[str, str], None]


@dataclass
class RotationPassResult:
    """Outcome of one check-and-rotate pass."""

    pass_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    keys_due: int = 0
    attempted: List[str] = field(default_factory=list)
    rotated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    deferred: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and not self.failed


@dataclass
class SchedulerStatus:
    """Point-in-time snapshot of the scheduler."""

    is_running: bool
    config: RotationJobConfig
    keys_needing_rotation: List[str]


class RotationScheduler:
    """Periodic rotation driver bound to one RotationEngine.

    A single worker thread waits ``check_interval_ms`` on a per-run stop
    event between passes, so passes never overlap. ``stop()`` prevents
    future passes and waits, bounded, for a pass already in flight.

    Example:
        scheduler = RotationScheduler(facade.rotation, RotationJobConfig(max_keys_per_batch=5))
        scheduler.add_rotation_hook(lambda key: notify_ops(key))
        scheduler.start()
    """

    def __init__(
        self,
        engine: RotationEngine,
        config: Optional[RotationJobConfig] = None,
        key_generator: Callable[[], str] = generate_key_material,
        clock: Clock = utcnow,
        history_size: int = 100,
    ):
        self.engine = engine
        self._config = config or RotationJobConfig()
        self._key_generator = key_generator
        self._clock = clock
        self._state_lock = threading.Lock()
        self._pass_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._rotation_hooks: List[RotationHook] = []
        self._failure_hooks: List[FailureHook] = []
        self._history: Deque[RotationPassResult] = deque(maxlen=history_size)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def config(self) -> RotationJobConfig:
        return self._config

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Run one pass now, then one every ``check_interval_ms``. Idempotent."""
        with self._state_lock:
            if self._running:
                logger.info("Key rotation scheduler already running")
                return
            self._running = True
            stop_event = threading.Event()
            self._stop_event = stop_event

        logger.info(
            "Starting key rotation scheduler (interval=%dms, batch=%d)",
            self._config.check_interval_ms,
            self._config.max_keys_per_batch,
        )
        self.run_pass()

        with self._state_lock:
            if self._stop_event is not stop_event:
                # stop() was called during the initial pass
                return
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event, self._config.check_interval_ms / 1000.0),
                name="key-rotation-scheduler",
                daemon=True,
            )
            self._thread = thread
            thread.start()

    def stop(self, timeout_seconds: Optional[float] = DEFAULT_SHUTDOWN_TIMEOUT_SECONDS) -> None:
        """Cancel future passes and wait for an in-flight pass. Idempotent.

        Waits at most ``timeout_seconds`` for the worker thread; ``None``
        waits indefinitely.
        """
        with self._state_lock:
            if self._stop_event is not None:
                self._stop_event.set()
            thread = self._thread
            self._stop_event = None
            self._thread = None
            was_running = self._running
            self._running = False
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout_seconds)
            if thread.is_alive():
                logger.warning(
                    "Rotation pass still running after %.1fs shutdown wait", timeout_seconds
                )
        if was_running:
            logger.info("Key rotation scheduler stopped")

    def set_check_interval(self, interval_ms: int) -> None:
        """Change the interval; a running scheduler restarts with an immediate pass."""
        self._config = RotationJobConfig(
            check_interval_ms=interval_ms,
            max_keys_per_batch=self._config.max_keys_per_batch,
        )
        if self._running:
            self.stop()
            self.start()

    def _run_loop(self, stop_event: threading.Event, interval_seconds: float) -> None:
        while not stop_event.wait(interval_seconds):
            self.run_pass()

    # ── Passes ────────────────────────────────────────────────────────

    @log_performance()
    def run_pass(self) -> RotationPassResult:
        """Rotate up to ``max_keys_per_batch`` due keys.

        Keys beyond the batch are left for the next pass. Exceptions are
        recorded on the result and never escape.
        """
        with self._pass_lock, OperationContext() as ctx:
            result = RotationPassResult(pass_id=ctx.operation_id, started_at=self._clock())
            try:
                logger.info("Checking for keys needing rotation")
                due = self.engine.get_all_keys_needing_rotation()
                result.keys_due = len(due)
                if not due:
                    logger.info("No keys require rotation")
                else:
                    batch = due[: self._config.max_keys_per_batch]
                    result.deferred = len(due) - len(batch)
                    for key_name in batch:
                        logger.info("Key %s needs rotation", key_name)
                        result.attempted.append(key_name)
                        if self.trigger_rotation(key_name):
                            result.rotated.append(key_name)
                        else:
                            result.failed.append(key_name)
                    if result.deferred:
                        logger.info("Deferred %d due keys to the next pass", result.deferred)
            except Exception as exc:
                result.error = str(exc)
                logger.exception("Error during rotation check")

            result.finished_at = self._clock()
            self._history.append(result)
            return result

    def trigger_rotation(self, key_name: str) -> bool:
        """Rotate one key immediately with freshly generated material."""
        with OperationContext(operation_id=get_operation_id(), key_name=key_name):
            logger.info("Triggering rotation for key %s", key_name)
            try:
                success = self.engine.rotate_key(key_name, self._key_generator())
            except Exception as exc:
                logger.error("Error rotating key %s: %s", key_name, exc)
                self._notify_failure(key_name, str(exc))
                return False

            if success:
                self._notify_rotation(key_name)
            else:
                logger.error("Failed to rotate key %s", key_name)
                self._notify_failure(key_name, "rotation write failed")
            return success

    # ── Notification hooks ────────────────────────────────────────────

    def add_rotation_hook(self, hook: RotationHook) -> None:
        """Register a callback invoked with the key name after each successful rotation."""
        self._rotation_hooks.append(hook)

    def add_failure_hook(self, hook: FailureHook) -> None:
        """Register a callback invoked with ``(key_name, reason)`` after a failed rotation."""
        self._failure_hooks.append(hook)

    def _notify_rotation(self, key_name: str) -> None:
        logger.info("Notifying about key rotation: %s", key_name)
        for hook in self._rotation_hooks:
            try:
                hook(key_name)
            except Exception as exc:
                logger.error("Rotation hook failed for %s: %s", key_name, exc)

    def _notify_failure(self, key_name: str, reason: str) -> None:
        for hook in self._failure_hooks:
            try:
                hook(key_name, reason)
            except Exception as exc:
                logger.error("Failure hook failed for %s: %s", key_name, exc)

    # ── Status ────────────────────────────────────────────────────────

    def get_status(self) -> SchedulerStatus:
        """Snapshot including a fresh (full listing) due-key evaluation."""
        return SchedulerStatus(
            is_running=self._running,
            config=RotationJobConfig(
                check_interval_ms=self._config.check_interval_ms,
                max_keys_per_batch=self._config.max_keys_per_batch,
            ),
            keys_needing_rotation=self.engine.get_all_keys_needing_rotation(),
        )

    def get_history(self, limit: int = 20) -> List[RotationPassResult]:
        """Most recent pass results, oldest first."""
        return list(self._history)[-limit:]

    def get_statistics(self) -> Dict[str, Any]:
        passes = list(self._history)
        rotated = sum(len(p.rotated) for p in passes)
        failed = sum(len(p.failed) for p in passes)
        last = passes[-1] if passes else None
        return {
            "is_running": self._running,
            "total_passes": len(passes),
            "errored_passes": sum(1 for p in passes if p.error),
            "keys_rotated": rotated,
            "keys_failed": failed,
            "last_pass_at": last.started_at if last else None,
            "last_pass_deferred": last.deferred if last else 0,
            "check_interval_ms": self._config.check_interval_ms,
            "max_keys_per_batch": self._config.max_keys_per_batch,
        }
