"""Shared fixtures for reconciliation engine tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from modules.reconciliation import (
    ReconciliationConfig,
    ReconciliationMonitor,
    ReconciliationOrchestrator,
    ReconciliationQueue,
)
from tests.factories.reconciliation import FakeClock


@pytest.fixture
def redis_client():
    """Isolated in-memory async Redis with decoded responses."""
    return FakeAsyncRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_factory():
    """Factory for creating ReconciliationConfig instances."""

    def _factory(**overrides: Any) -> ReconciliationConfig:
        return ReconciliationConfig(**overrides)

    return _factory


@pytest.fixture
def queue_factory(redis_client, clock, metrics, config_factory):
    """Factory for creating queues sharing the test store and clock."""

    def _factory(config: ReconciliationConfig | None = None, **overrides: Any):
        return ReconciliationQueue(
            redis_client,
            config or config_factory(**overrides),
            metrics,
            clock=clock,
        )

    return _factory


@pytest.fixture
def queue(queue_factory):
    return queue_factory()


@pytest.fixture
def monitor_factory(queue_factory, metrics):
    """Factory for creating monitors over a fresh queue."""

    def _factory(**overrides: Any) -> ReconciliationMonitor:
        sync_queue = queue_factory(**overrides)
        return ReconciliationMonitor(sync_queue, sync_queue.config, metrics)

    return _factory


@pytest.fixture
def monitor(monitor_factory):
    return monitor_factory()


@pytest.fixture
def mock_adapter():
    """Identity provider adapter whose calls all succeed."""
    adapter = MagicMock()
    adapter.create_user = AsyncMock(return_value="remote-user-1")
    adapter.update_user = AsyncMock(return_value=None)
    adapter.delete_user = AsyncMock(return_value=None)
    return adapter


@pytest.fixture
def orchestrator_factory(redis_client, clock, metrics, mock_adapter, config_factory):
    """Factory for creating orchestrators over the test store."""

    def _factory(adapter=None, **overrides: Any) -> ReconciliationOrchestrator:
        return ReconciliationOrchestrator(
            redis_client,
            adapter or mock_adapter,
            config_factory(**overrides),
            metrics,
            clock=clock,
        )

    return _factory
