"""Reconciliation data models.

This module defines the sync operation record together with the derived,
point-in-time views reported by the queue, the monitor and the orchestrator.
All timestamps are timezone-aware UTC datetimes.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from modules.reconciliation.errors import InvalidOperationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: float) -> datetime:
    """Convert milliseconds since the epoch to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def generate_operation_id(now: Optional[datetime] = None) -> str:
    """Generate a unique, generation-time ordered operation id.

    Format is ``<epoch-ms>-<12 hex chars>``, e.g. ``1700000000000-3fa85f64a1b2``.
    """
    timestamp = to_epoch_ms(now or utc_now())
    return f"{timestamp}-{secrets.token_hex(6)}"


def operation_id_timestamp(operation_id: str) -> Optional[int]:
    """Extract the creation timestamp (epoch ms) embedded in an operation id."""
    prefix, _, _ = operation_id.partition("-")
    try:
        return int(prefix)
    except ValueError:
        return None


class SyncOperationType(Enum):
    """Kind of change to propagate to the identity provider.

    Values:
        CREATE: Create the user remotely (priority 1)
        UPDATE: Update the remote user (priority 0, FIFO)
        DELETE: Delete the remote user (priority 2)
    """

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @property
    def default_priority(self) -> int:
        return _DEFAULT_PRIORITIES[self]


_DEFAULT_PRIORITIES = {
    SyncOperationType.DELETE: 2,
    SyncOperationType.CREATE: 1,
    SyncOperationType.UPDATE: 0,
}


class SyncOperationStatus(Enum):
    """Lifecycle state of a sync operation.

    PENDING -> PROCESSING -> COMPLETED | RETRYING | FAILED, and
    RETRYING -> PROCESSING once ``scheduled_for`` elapses. COMPLETED
    operations are deleted from the store, so the value is only ever seen
    in memory.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    RETRYING = "RETRYING"
    FAILED = "FAILED"


class UserSyncState(Enum):
    """Per-user sync state reported by ``get_user_sync_status``."""

    SYNCED = "SYNCED"
    PENDING = "PENDING"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


class HealthLevel(Enum):
    """Ordinal health level: HEALTHY < DEGRADED < UNHEALTHY."""

    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    UNHEALTHY = "UNHEALTHY"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def gauge_value(self) -> float:
        """Value exported on the health gauges (1 healthy, 0 unhealthy)."""
        return _GAUGE_VALUES[self]

    @classmethod
    def worst(cls, *levels: "HealthLevel") -> "HealthLevel":
        return max(levels, key=lambda level: level.severity, default=cls.HEALTHY)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, HealthLevel):
            return NotImplemented
        return self.severity < other.severity


_SEVERITY = {
    HealthLevel.HEALTHY: 0,
    HealthLevel.DEGRADED: 1,
    HealthLevel.UNHEALTHY: 2,
}

_GAUGE_VALUES = {
    HealthLevel.HEALTHY: 1.0,
    HealthLevel.DEGRADED: 0.5,
    HealthLevel.UNHEALTHY: 0.0,
}


@dataclass
class SyncOperation:
    """A unit of reconciliation work.

    Fields:
        id: Unique, generation-time ordered id (never reused)
        user_id: Subject user
        type: CREATE, UPDATE or DELETE
        data: Payload for the identity provider; None only for DELETE
        attempt: Failure counter, starts at 0 and only increases
        max_attempts: Attempts allowed before the operation is dead-lettered
        created_at: Immutable creation time
        scheduled_for: Earliest time the operation may be dequeued
        last_error: Most recent failure message
        status: Lifecycle state
        priority: Higher dequeues first among non-retry operations
        started_at: When the current execution was claimed by a worker
    """

    id: str
    user_id: str
    type: SyncOperationType
    data: Optional[Dict[str, Any]] = None
    attempt: int = 0
    max_attempts: int = 5
    created_at: datetime = field(default_factory=utc_now)
    scheduled_for: datetime = field(default_factory=utc_now)
    last_error: Optional[str] = None
    status: SyncOperationStatus = SyncOperationStatus.PENDING
    priority: int = 0
    started_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.id:
            raise InvalidOperationError("operation id is required")
        validate_operation(self.user_id, self.type, self.data)
        if self.attempt < 0:
            raise InvalidOperationError("attempt must be non-negative")

    @property
    def can_retry(self) -> bool:
        return self.attempt < self.max_attempts


def validate_operation(
    user_id: str, operation_type: SyncOperationType, data: Optional[Dict[str, Any]]
) -> None:
    """Raise InvalidOperationError when the user id or payload is unusable."""
    if not user_id:
        raise InvalidOperationError("user_id is required")
    if not isinstance(operation_type, SyncOperationType):
        raise InvalidOperationError(f"unknown operation type: {operation_type!r}")
    if operation_type is SyncOperationType.DELETE:
        if data is not None:
            raise InvalidOperationError("DELETE operation must not carry data")
        return
    if data is None:
        raise InvalidOperationError(f"{operation_type.value} operation requires data")
    if not isinstance(data, dict):
        raise InvalidOperationError(
            f"{operation_type.value} operation data must be a dictionary"
        )


@dataclass
class QueueStats:
    """Point-in-time queue statistics.

    ``pending`` counts both the FIFO and the priority structures. The
    ``total_*`` fields are lifetime counters kept in the store. When the
    store could not be read, ``available`` is False and every count is zero.
    """

    pending: int = 0
    processing: int = 0
    retrying: int = 0
    failed: int = 0
    total_operations: int = 0
    total_successful: int = 0
    total_failed: int = 0
    total_retried: int = 0
    avg_duration_ms: float = 0.0
    oldest_pending_age_ms: int = 0
    available: bool = True

    @property
    def backlog(self) -> int:
        """Operations waiting to run: pending plus retry-scheduled."""
        return self.pending + self.retrying

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "retrying": self.retrying,
            "failed": self.failed,
            "backlog": self.backlog,
            "total_operations": self.total_operations,
            "total_successful": self.total_successful,
            "total_failed": self.total_failed,
            "total_retried": self.total_retried,
            "avg_duration_ms": self.avg_duration_ms,
            "oldest_pending_age_ms": self.oldest_pending_age_ms,
            "available": self.available,
        }


@dataclass
class SyncStatus:
    """Per-user reconciliation status.

    ``status`` reflects the latest outcome: every successful operation
    reports SYNCED. ``pending_operations`` is informational and counts
    operations queued but not yet completed or dead-lettered.
    """

    user_id: str
    status: UserSyncState = UserSyncState.SYNCED
    last_sync_at: Optional[datetime] = None
    last_sync_type: Optional[SyncOperationType] = None
    pending_operations: int = 0
    failed_operations: int = 0
    last_error: Optional[str] = None


@dataclass
class HealthCheck:
    """Health of one subsystem (queue or sync)."""

    status: HealthLevel
    message: str
    metrics: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class HealthStatus:
    """Aggregate health: the worst of the queue and sync checks."""

    overall: HealthLevel
    queue: HealthCheck
    sync: HealthCheck
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_healthy(self) -> bool:
        return self.overall is HealthLevel.HEALTHY


@dataclass
class SyncMetrics:
    """Snapshot of in-process execution metrics for external reporting."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    retried_operations: int = 0
    success_rate: float = 1.0
    avg_duration_ms: float = 0.0
    operations_by_type: Dict[str, int] = field(default_factory=dict)
    errors_by_type: Dict[str, int] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class SyncResult:
    """Outcome of executing one operation against the identity provider."""

    operation: SyncOperation
    success: bool
    duration_ms: float
    error: Optional[str] = None
    error_code: Optional[str] = None
    recoverable: Optional[bool] = None
    final_status: Optional[SyncOperationStatus] = None
