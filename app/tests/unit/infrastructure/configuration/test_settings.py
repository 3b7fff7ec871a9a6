"""Unit tests for infrastructure.configuration.settings module.

Tests cover:
- Settings aggregation of domain settings
- ElastiCacheSettings defaults and environment overrides
- ReconciliationSettings environment aliases
- Production detection
"""

import pytest

from infrastructure.configuration import (
    ElastiCacheSettings,
    ReconciliationSettings,
    Settings,
)
from infrastructure.configuration.base import (
    InfrastructureSettings,
    IntegrationSettings,
)


@pytest.mark.unit
class TestSettings:
    """Test suite for the Settings aggregator."""

    def test_builds_domain_settings(self):
        """Each domain section is instantiated automatically."""
        settings = Settings()

        assert isinstance(settings.elasticache, ElastiCacheSettings)
        assert isinstance(settings.reconciliation, ReconciliationSettings)

    def test_section_override(self):
        """A section can be passed explicitly."""
        reconciliation = ReconciliationSettings(RECONCILIATION_MAX_RETRIES=2)

        settings = Settings(reconciliation=reconciliation)

        assert settings.reconciliation.max_retries == 2

    def test_is_production_without_prefix(self, monkeypatch):
        """An empty PREFIX means production."""
        monkeypatch.setenv("PREFIX", "")

        assert Settings().is_production is True

    def test_is_not_production_with_prefix(self, monkeypatch):
        """Any PREFIX marks a non-production deployment."""
        monkeypatch.setenv("PREFIX", "dev-")

        assert Settings().is_production is False

    def test_log_level_from_environment(self, monkeypatch):
        """LOG_LEVEL is read from the environment."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        assert Settings().LOG_LEVEL == "DEBUG"

    def test_base_classes(self):
        """Sections inherit from the shared domain base classes."""
        assert issubclass(ElastiCacheSettings, IntegrationSettings)
        assert issubclass(ReconciliationSettings, InfrastructureSettings)


@pytest.mark.unit
class TestElastiCacheSettings:
    """Test suite for ElastiCacheSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults target a local Redis."""
        for name in ("ELASTICACHE_ENDPOINT", "ELASTICACHE_PORT", "ELASTICACHE_ENABLED"):
            monkeypatch.delenv(name, raising=False)

        settings = ElastiCacheSettings()

        assert settings.ELASTICACHE_ENABLED is True
        assert settings.ELASTICACHE_ENDPOINT == "localhost"
        assert settings.ELASTICACHE_PORT == 6379
        assert settings.ELASTICACHE_DB == 0

    def test_environment_overrides(self, monkeypatch):
        """Connection settings are read from the environment."""
        monkeypatch.setenv("ELASTICACHE_ENDPOINT", "sync.abc123.cache.amazonaws.com")
        monkeypatch.setenv("ELASTICACHE_PORT", "6380")
        monkeypatch.setenv("ELASTICACHE_SOCKET_TIMEOUT", "2.5")

        settings = ElastiCacheSettings()

        assert settings.ELASTICACHE_ENDPOINT == "sync.abc123.cache.amazonaws.com"
        assert settings.ELASTICACHE_PORT == 6380
        assert settings.ELASTICACHE_SOCKET_TIMEOUT == 2.5


@pytest.mark.unit
class TestReconciliationSettings:
    """Test suite for ReconciliationSettings."""

    def test_defaults(self):
        """Defaults match the engine defaults."""
        settings = ReconciliationSettings()

        assert settings.max_queue_size == 10000
        assert settings.max_retries == 5
        assert settings.retry_base_delay_ms == 5000
        assert settings.retry_multiplier == 5.0
        assert settings.worker_concurrency == 5
        assert settings.key_prefix == "sync:"

    def test_environment_overrides(self, monkeypatch):
        """RECONCILIATION_* variables override the defaults."""
        monkeypatch.setenv("RECONCILIATION_MAX_QUEUE_SIZE", "500")
        monkeypatch.setenv("RECONCILIATION_RETRY_JITTER_RATIO", "0.1")
        monkeypatch.setenv("RECONCILIATION_SUCCESS_RATE_THRESHOLD", "0.9")

        settings = ReconciliationSettings()

        assert settings.max_queue_size == 500
        assert settings.retry_jitter_ratio == 0.1
        assert settings.success_rate_threshold == 0.9

    def test_lowercase_names_are_ignored(self, monkeypatch):
        """Only the documented upper-case names are read."""
        monkeypatch.setenv("max_retries", "1")

        assert ReconciliationSettings().max_retries == 5
