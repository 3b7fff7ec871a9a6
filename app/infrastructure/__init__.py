"""Infrastructure modules for the reconciliation service.

Centralized infrastructure components:
- configuration: Settings management (settings, ReconciliationSettings)
- logging: Structured logging (get_module_logger, bind_operation_context)
- metrics: Metrics collection (MetricsCollector, InMemoryMetricsCollector)
- operations: Operation results and error classification
- services: Application-scoped providers (get_settings, get_metrics_collector)
"""

# Configuration
from infrastructure.configuration import settings

# Logging
from infrastructure.logging import get_module_logger

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    # Configuration
    "settings",
    # Logging
    "get_module_logger",
    # Operations
    "OperationResult",
    "OperationStatus",
]
