"""Factory functions for reconciliation test data."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from modules.reconciliation.models import (
    SyncOperation,
    SyncOperationStatus,
    SyncOperationType,
)

DEFAULT_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for the queue.

    Example:
        clock = FakeClock()
        queue = ReconciliationQueue(redis, clock=clock)
        clock.advance(ms=5000)
    """

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or DEFAULT_NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int = 0, seconds: int = 0, minutes: int = 0) -> datetime:
        self.now += timedelta(milliseconds=ms, seconds=seconds, minutes=minutes)
        return self.now


def make_user_payload(
    email: str = "jane.doe@example.com",
    first_name: str = "Jane",
    last_name: str = "Doe",
    enabled: bool = True,
    **extra: Any,
) -> Dict[str, Any]:
    """Create an identity provider user payload.

    Args:
        email: User email
        first_name: Given name
        last_name: Family name
        enabled: Whether the account is enabled
        **extra: Additional payload keys

    Returns:
        Dictionary with user payload data
    """
    payload = {
        "email": email,
        "firstName": first_name,
        "lastName": last_name,
        "enabled": enabled,
    }
    payload.update(extra)
    return payload


def make_sync_operation(
    operation_id: str = "1705320000000-0123456789ab",
    user_id: str = "user-123",
    operation_type: SyncOperationType = SyncOperationType.UPDATE,
    data: Optional[Dict[str, Any]] = None,
    attempt: int = 0,
    max_attempts: int = 5,
    created_at: Optional[datetime] = None,
    scheduled_for: Optional[datetime] = None,
    status: SyncOperationStatus = SyncOperationStatus.PENDING,
    priority: Optional[int] = None,
    last_error: Optional[str] = None,
    started_at: Optional[datetime] = None,
) -> SyncOperation:
    """Create a SyncOperation with sensible defaults.

    CREATE and UPDATE operations get a user payload unless one is given;
    DELETE operations never carry data. Priority defaults to the type's
    default priority.
    """
    if data is None and operation_type is not SyncOperationType.DELETE:
        data = make_user_payload()

    return SyncOperation(
        id=operation_id,
        user_id=user_id,
        type=operation_type,
        data=data,
        attempt=attempt,
        max_attempts=max_attempts,
        created_at=created_at or DEFAULT_NOW,
        scheduled_for=scheduled_for or created_at or DEFAULT_NOW,
        status=status,
        priority=operation_type.default_priority if priority is None else priority,
        last_error=last_error,
        started_at=started_at,
    )


def make_legacy_record(
    operation_id: str = "1705320000000-0123456789ab",
    user_id: str = "user-123",
    operation_type: str = "UPDATE",
    data: Optional[Dict[str, Any]] = None,
    attempt: int = 0,
    max_attempts: int = 3,
    status: str = "PENDING",
    priority: int = 0,
    last_error: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an unversioned camelCase operation record as stored before
    schema versioning was introduced."""
    record: Dict[str, Any] = {
        "id": operation_id,
        "userId": user_id,
        "type": operation_type,
        "attempt": attempt,
        "maxAttempts": max_attempts,
        "createdAt": "2024-01-15T12:00:00.000Z",
        "scheduledFor": "2024-01-15T12:00:00.000Z",
        "status": status,
        "priority": priority,
    }
    if operation_type != "DELETE":
        record["data"] = data if data is not None else make_user_payload()
    if last_error is not None:
        record["lastError"] = last_error
    return record
