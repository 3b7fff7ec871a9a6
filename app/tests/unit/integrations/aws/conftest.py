"""Fixtures for AWS integrations tests.

Level: Component-level fixtures for AWS integrations
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture
def mock_redis_class():
    """Patch the asyncio Redis class used by the ElastiCache module."""
    with patch("integrations.aws.elasticache.Redis") as mock_redis:
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        client.aclose = AsyncMock()
        mock_redis.return_value = client
        yield mock_redis


@pytest.fixture
def mock_connection_pool():
    """Patch the Redis connection pool class."""
    with patch("integrations.aws.elasticache.ConnectionPool") as mock_pool:
        mock_pool.return_value.disconnect = AsyncMock()
        yield mock_pool


@pytest.fixture
def mock_elasticache_settings(monkeypatch):
    """Mock ElastiCache settings for testing."""
    mock_settings = MagicMock()
    mock_settings.elasticache.ELASTICACHE_ENABLED = True
    mock_settings.elasticache.ELASTICACHE_ENDPOINT = "test-endpoint.cache.amazonaws.com"
    mock_settings.elasticache.ELASTICACHE_PORT = 6379
    mock_settings.elasticache.ELASTICACHE_DB = 0
    mock_settings.elasticache.ELASTICACHE_MAX_CONNECTIONS = 10
    mock_settings.elasticache.ELASTICACHE_SOCKET_TIMEOUT = 5.0
    monkeypatch.setattr("integrations.aws.elasticache.settings", mock_settings)
    return mock_settings


@pytest.fixture
def reset_elasticache_global_state():
    """Reset ElastiCache global connection state between tests."""
    import integrations.aws.elasticache as ec

    original_pool = ec._connection_pool
    original_client = ec._redis_client

    ec._connection_pool = None
    ec._redis_client = None

    yield

    ec._connection_pool = original_pool
    ec._redis_client = original_client
