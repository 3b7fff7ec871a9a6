"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the
reconciliation service using Pydantic BaseSettings with domain-based
organization.

Exports:
    settings: Singleton Settings instance (main configuration object)
    Settings: Main settings class (for testing/overrides)
    ElastiCacheSettings: Persistent store connection settings class
    ReconciliationSettings: Reconciliation engine settings class

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    prefix = settings.reconciliation.key_prefix
    endpoint = settings.elasticache.ELASTICACHE_ENDPOINT
    ```
"""

from infrastructure.configuration.settings import Settings, settings
from infrastructure.configuration.integrations.elasticache import ElastiCacheSettings
from infrastructure.configuration.infrastructure.reconciliation import (
    ReconciliationSettings,
)

__all__ = ["Settings", "settings", "ElastiCacheSettings", "ReconciliationSettings"]
