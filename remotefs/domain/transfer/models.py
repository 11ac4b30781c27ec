"""
Transfer data models
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ...core.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_HASH_ALGORITHM,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_VERIFY_THRESHOLD,
    REMOTE_HASH_COMMANDS,
    UNKNOWN_TOTAL,
)
from ...core.exceptions import ConfigError, TransferError
from ...core.utils import format_bytes


class TaskStatus(str, Enum):
    """Task status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransferDirection(str, Enum):
    """Transfer direction"""
    UPLOAD = "upload"                      # local -> remote
    DOWNLOAD = "download"                  # remote -> local
    SERVER_TO_SERVER = "server_to_server"  # remote -> remote


_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED},
}

_TERMINAL = {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}


@dataclass
class TransferConfig:
    """Transfer configuration"""
    buffer_size: int = DEFAULT_BUFFER_SIZE
    verify_threshold: int = DEFAULT_VERIFY_THRESHOLD
    verify: bool = True
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM

    # Queue
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def validate(self) -> None:
        """Validate configuration"""
        if self.buffer_size <= 0:
            raise ConfigError(f"Invalid buffer_size: {self.buffer_size}")
        if self.max_concurrency < 1:
            raise ConfigError(f"Invalid max_concurrency: {self.max_concurrency}")
        if self.poll_interval <= 0:
            raise ConfigError(f"Invalid poll_interval: {self.poll_interval}")
        if self.hash_algorithm not in REMOTE_HASH_COMMANDS:
            raise ConfigError(
                f"Invalid hash_algorithm: {self.hash_algorithm}, "
                f"must be one of {', '.join(sorted(REMOTE_HASH_COMMANDS))}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buffer_size": self.buffer_size,
            "verify_threshold": self.verify_threshold,
            "verify": self.verify,
            "hash_algorithm": self.hash_algorithm,
            "max_concurrency": self.max_concurrency,
            "poll_interval": self.poll_interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransferConfig":
        """Create from dictionary, ignoring unknown keys"""
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        config = cls(**valid_fields)
        config.validate()
        return config


@dataclass(frozen=True)
class TransferProgress:
    """Progress record delivered to a progress sink"""
    current_item_name: str
    items_processed: int
    total_items: int = UNKNOWN_TOTAL
    message: str = ""

    @property
    def total_known(self) -> bool:
        return self.total_items >= 0


ProgressSink = Callable[[TransferProgress], None]


@dataclass(eq=False)
class TransferTask:
    """
    One queued file transfer.

    Status only moves forward: pending -> in_progress -> completed | failed
    | cancelled, with cancellation also allowed straight from pending.
    ``bytes_transferred`` never decreases and never exceeds a known total.
    """
    direction: TransferDirection
    source_path: str
    destination_path: str
    file_name: str = ""
    total_bytes: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    queued_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: str = ""
    _status: TaskStatus = field(default=TaskStatus.PENDING, repr=False)
    _bytes_transferred: int = field(default=0, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    # --------------------
    # State
    # --------------------
    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def bytes_transferred(self) -> int:
        return self._bytes_transferred

    @property
    def is_finished(self) -> bool:
        return self._status in _TERMINAL

    @property
    def progress_percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self._bytes_transferred * 100.0 / self.total_bytes

    @property
    def status_text(self) -> str:
        status = self._status
        if status == TaskStatus.PENDING:
            return "Waiting..."
        if status == TaskStatus.IN_PROGRESS:
            return (
                f"{self.progress_percent:.1f}% "
                f"({format_bytes(self._bytes_transferred)}/{format_bytes(self.total_bytes)})"
            )
        if status == TaskStatus.COMPLETED:
            return f"Done ({format_bytes(self.total_bytes)})"
        if status == TaskStatus.FAILED:
            return f"Failed: {self.error_message}"
        return "Cancelled"

    # --------------------
    # Transitions
    # --------------------
    def _transition(self, new_status: TaskStatus) -> None:
        if new_status not in _TRANSITIONS.get(self._status, set()):
            raise TransferError(
                f"Invalid status transition for task {self.id}: "
                f"{self._status.value} -> {new_status.value}"
            )
        self._status = new_status
        if new_status in _TERMINAL:
            self.completed_at = datetime.now()
            self._done.set()

    def start(self) -> None:
        with self._lock:
            self._transition(TaskStatus.IN_PROGRESS)
            self.started_at = datetime.now()

    def complete(self) -> None:
        with self._lock:
            self._transition(TaskStatus.COMPLETED)

    def fail(self, message: str) -> None:
        with self._lock:
            self.error_message = message
            self._transition(TaskStatus.FAILED)

    def cancel(self) -> bool:
        """Cancel a pending or running task. Returns False if already finished."""
        with self._lock:
            if self._status in _TERMINAL:
                return False
            self._transition(TaskStatus.CANCELLED)
            return True

    # --------------------
    # Progress
    # --------------------
    def set_bytes_transferred(self, value: int) -> None:
        """Raise the transferred count; lower values are ignored, totals clamp"""
        with self._lock:
            if self.total_bytes > 0:
                value = min(value, self.total_bytes)
            if value > self._bytes_transferred:
                self._bytes_transferred = value

    def add_bytes(self, count: int) -> None:
        if count <= 0:
            return
        self.set_bytes_transferred(self._bytes_transferred + count)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the task reaches a terminal status"""
        return self._done.wait(timeout)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "source_path": self.source_path,
            "destination_path": self.destination_path,
            "file_name": self.file_name,
            "total_bytes": self.total_bytes,
            "bytes_transferred": self._bytes_transferred,
            "status": self._status.value,
            "queued_at": self.queued_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }
