"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache
from typing import Optional

from redis.asyncio import Redis

from infrastructure.configuration import Settings
from infrastructure.metrics import InMemoryMetricsCollector, MetricsCollector
from integrations.aws.elasticache import get_elasticache_client
from modules.reconciliation.adapters import IdentityProviderAdapter
from modules.reconciliation.config import ReconciliationConfig
from modules.reconciliation.orchestrator import ReconciliationOrchestrator


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process,
    even if called from multiple packages.

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_metrics_collector() -> MetricsCollector:
    """
    Get application-scoped metrics collector singleton.

    Returns:
        MetricsCollector: Cached in-process collector shared by all components.
    """
    return InMemoryMetricsCollector()


@lru_cache
def get_reconciliation_config() -> ReconciliationConfig:
    """
    Get the validated reconciliation engine configuration.

    Raises:
        ValueError: If the RECONCILIATION_* environment is inconsistent.
    """
    return ReconciliationConfig.from_settings(get_settings().reconciliation)


def create_reconciliation_orchestrator(
    adapter: IdentityProviderAdapter,
    redis: Optional[Redis] = None,
) -> ReconciliationOrchestrator:
    """
    Build an orchestrator wired to the shared store, config and metrics.

    Not cached: each orchestrator owns its worker and health-check tasks, so
    the caller controls its lifecycle (start_worker / dispose).

    Args:
        adapter: Identity provider adapter.
        redis: Optional client. Defaults to the shared ElastiCache client.

    Usage:
        orchestrator = create_reconciliation_orchestrator(KeycloakAdapter(client))
        await orchestrator.start_worker()
    """
    return ReconciliationOrchestrator(
        redis if redis is not None else get_elasticache_client(),
        adapter,
        config=get_reconciliation_config(),
        metrics=get_metrics_collector(),
    )
