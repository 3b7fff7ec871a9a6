"""Unit tests for the AWS ElastiCache Redis client integration.

Tests cover:
- Connection pool creation and reuse
- Disabled store handling
- Client shutdown
- Health check results (healthy, connection errors, other Redis errors)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from redis.exceptions import ConnectionError, RedisError, TimeoutError

import integrations.aws.elasticache as ec
from infrastructure.operations.status import OperationStatus
from integrations.aws.elasticache import (
    close_elasticache_client,
    get_elasticache_client,
    health_check,
)


@pytest.mark.unit
class TestGetElastiCacheClient:
    """Tests for client and connection pool management."""

    def test_creates_connection_pool_on_first_access(
        self,
        mock_connection_pool,
        mock_redis_class,
        mock_elasticache_settings,
        reset_elasticache_global_state,
    ):
        """The pool is built from settings with decoded responses."""
        client = get_elasticache_client()

        assert client is mock_redis_class.return_value
        mock_connection_pool.assert_called_once()
        kwargs = mock_connection_pool.call_args.kwargs
        assert kwargs["host"] == "test-endpoint.cache.amazonaws.com"
        assert kwargs["port"] == 6379
        assert kwargs["decode_responses"] is True
        assert kwargs["max_connections"] == 10

    def test_reuses_existing_client(
        self,
        mock_connection_pool,
        mock_redis_class,
        mock_elasticache_settings,
        reset_elasticache_global_state,
    ):
        """Subsequent calls return the same client and pool."""
        first = get_elasticache_client()
        second = get_elasticache_client()

        assert first is second
        mock_connection_pool.assert_called_once()
        mock_redis_class.assert_called_once()

    def test_disabled_store_raises(
        self, mock_elasticache_settings, reset_elasticache_global_state
    ):
        """A disabled store cannot be used by the engine."""
        mock_elasticache_settings.elasticache.ELASTICACHE_ENABLED = False

        with pytest.raises(RuntimeError, match="disabled"):
            get_elasticache_client()

    @pytest.mark.asyncio
    async def test_close_releases_client_and_pool(
        self,
        mock_connection_pool,
        mock_redis_class,
        mock_elasticache_settings,
        reset_elasticache_global_state,
    ):
        """Closing drops the shared client so the next call reconnects."""
        client = get_elasticache_client()

        await close_elasticache_client()

        client.aclose.assert_awaited_once()
        mock_connection_pool.return_value.disconnect.assert_awaited_once()
        assert ec._redis_client is None
        assert ec._connection_pool is None

    @pytest.mark.asyncio
    async def test_close_without_client(self, reset_elasticache_global_state):
        """Closing before first use is a no-op."""
        await close_elasticache_client()

        assert ec._redis_client is None


@pytest.mark.unit
class TestHealthCheck:
    """Tests for the ElastiCache health check."""

    @pytest.mark.asyncio
    async def test_healthy_store(self):
        """A reachable store reports success."""
        client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)

        result = await health_check(client)

        assert result.is_success
        assert result.message == "ElastiCache connection healthy"

    @pytest.mark.asyncio
    async def test_unreachable_store(self):
        """A disconnected store is a transient failure."""
        server = FakeServer()
        server.connected = False
        client = FakeAsyncRedis(server=server, decode_responses=True)

        result = await health_check(client)

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "CONNECTION_ERROR"

    @pytest.mark.parametrize("error", [ConnectionError("refused"), TimeoutError("slow")])
    @pytest.mark.asyncio
    async def test_connection_errors_are_transient(self, error):
        """Connection and timeout errors can be retried."""
        client = MagicMock()
        client.ping = AsyncMock(side_effect=error)

        result = await health_check(client)

        assert result.is_recoverable
        assert "ElastiCache connection error" in result.message

    @pytest.mark.asyncio
    async def test_other_redis_errors_are_permanent(self):
        """Other Redis errors are reported as permanent."""
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisError("NOAUTH Authentication required"))

        result = await health_check(client)

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "REDIS_ERROR"

    @pytest.mark.asyncio
    async def test_uses_shared_client_by_default(
        self,
        mock_connection_pool,
        mock_redis_class,
        mock_elasticache_settings,
        reset_elasticache_global_state,
    ):
        """Without an explicit client the shared one is pinged."""
        result = await health_check()

        assert result.is_success
        mock_redis_class.return_value.ping.assert_awaited_once()
