"""Application-scoped service providers.

Provides cached singletons for settings and metrics and a factory wiring the
reconciliation orchestrator to the ElastiCache store.
"""

from infrastructure.services.providers import (
    create_reconciliation_orchestrator,
    get_metrics_collector,
    get_reconciliation_config,
    get_settings,
)

__all__ = [
    "create_reconciliation_orchestrator",
    "get_metrics_collector",
    "get_reconciliation_config",
    "get_settings",
]
