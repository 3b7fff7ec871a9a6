"""Exceptions raised by the reconciliation engine.

Store failures are not wrapped: ``redis.exceptions.RedisError`` propagates
from the queue's write paths as-is.
"""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for all reconciliation engine errors.

    Example:
        try:
            await orchestrator.queue_user_update(user_id, payload)
        except ReconciliationError as e:
            logger.error("sync_enqueue_rejected", error=str(e))
    """

    pass


class QueueCapacityError(ReconciliationError):
    """Raised when the backlog has reached ``max_queue_size``.

    The operation is not stored; the caller must retry later.

    Attributes:
        backlog: Pending plus retrying operations at the time of the rejection
        max_queue_size: Configured capacity
    """

    def __init__(self, backlog: int, max_queue_size: int):
        super().__init__(
            f"Sync queue is full ({backlog}/{max_queue_size} operations)"
        )
        self.backlog = backlog
        self.max_queue_size = max_queue_size


class InvalidOperationError(ReconciliationError, ValueError):
    """Raised when an operation is malformed.

    Example:
        >>> await queue.enqueue("user-1", SyncOperationType.CREATE, None)
        Traceback (most recent call last):
        ...
        InvalidOperationError: CREATE operation requires data
    """

    pass


class OperationTimeoutError(ReconciliationError, TimeoutError):
    """Raised when an identity provider call exceeds ``operation_timeout_ms``.

    Subclasses TimeoutError so the error classifier treats it as transient.
    """

    def __init__(self, operation_id: str, timeout_ms: int):
        super().__init__(
            f"Identity provider call for operation {operation_id} "
            f"timed out after {timeout_ms}ms"
        )
        self.operation_id = operation_id
        self.timeout_ms = timeout_ms


class SerializationError(ReconciliationError):
    """Raised when an operation record cannot be encoded or decoded.

    Attributes:
        operation_id: Id of the offending record, when known
    """

    def __init__(self, message: str, operation_id: Optional[str] = None):
        super().__init__(message)
        self.operation_id = operation_id
