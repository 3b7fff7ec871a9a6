"""Asynchronous user reconciliation engine.

Keeps the local user database and the identity provider consistent without
blocking callers: changes are queued in Redis and a background worker applies
them to the identity provider with bounded, backed-off retries and a
dead-letter list for permanent failures.

Public API:
    - ReconciliationOrchestrator: enqueue changes, run the worker, report status
    - ReconciliationQueue: persistent priority/retry queue
    - ReconciliationMonitor: health levels and execution metrics
    - ReconciliationConfig: runtime configuration
    - IdentityProviderAdapter: protocol implemented by identity provider clients
"""

from modules.reconciliation.adapters import IdentityProviderAdapter
from modules.reconciliation.backoff import calculate_retry_delay
from modules.reconciliation.config import ReconciliationConfig
from modules.reconciliation.errors import (
    InvalidOperationError,
    OperationTimeoutError,
    QueueCapacityError,
    ReconciliationError,
    SerializationError,
)
from modules.reconciliation.models import (
    HealthCheck,
    HealthLevel,
    HealthStatus,
    QueueStats,
    SyncMetrics,
    SyncOperation,
    SyncOperationStatus,
    SyncOperationType,
    SyncResult,
    SyncStatus,
    UserSyncState,
)
from modules.reconciliation.monitor import ReconciliationMonitor
from modules.reconciliation.orchestrator import ReconciliationOrchestrator
from modules.reconciliation.queue import ReconciliationQueue

__all__ = [
    # Components
    "ReconciliationOrchestrator",
    "ReconciliationQueue",
    "ReconciliationMonitor",
    "ReconciliationConfig",
    "IdentityProviderAdapter",
    "calculate_retry_delay",
    # Models
    "HealthCheck",
    "HealthLevel",
    "HealthStatus",
    "QueueStats",
    "SyncMetrics",
    "SyncOperation",
    "SyncOperationStatus",
    "SyncOperationType",
    "SyncResult",
    "SyncStatus",
    "UserSyncState",
    # Errors
    "ReconciliationError",
    "QueueCapacityError",
    "InvalidOperationError",
    "OperationTimeoutError",
    "SerializationError",
]
