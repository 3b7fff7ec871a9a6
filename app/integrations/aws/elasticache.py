"""AWS ElastiCache Redis/Valkey client for the reconciliation store.

This module provides an asyncio Redis CLIENT connection to ElastiCache
clusters. The reconciliation queue keeps all of its state (pending list,
priority and retry sorted sets, processing set, dead-letter list, stats and
per-user status hashes) in this store.

IMPORTANT: This is NOT using the AWS API (boto3) because we CONNECT TO
ElastiCache as a Redis database client; all operations are key-value
commands, analogous to connecting to a database.

Features:
- Connection pooling with retry on timeout
- Lazy, shared client per process
- Health check returning a standard OperationResult

Usage:
    from integrations.aws.elasticache import get_elasticache_client

    client = get_elasticache_client()
    queue = ReconciliationQueue(client, config)
"""

from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from infrastructure.configuration import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations.result import OperationResult

logger = get_module_logger()

# Global connection pool (initialized on first use)
_connection_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


def get_elasticache_client() -> Redis:
    """Get or create the ElastiCache (Redis) client with connection pooling.

    The pool connects lazily, so creating the client never blocks; the first
    awaited command opens the connection.

    Returns:
        Redis: asyncio Redis client instance with decoded string responses

    Raises:
        RuntimeError: If ElastiCache is disabled in settings
    """
    global _connection_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    if not settings.elasticache.ELASTICACHE_ENABLED:
        raise RuntimeError("ElastiCache is disabled (ELASTICACHE_ENABLED=False)")

    if _connection_pool is None:
        _connection_pool = ConnectionPool(
            host=settings.elasticache.ELASTICACHE_ENDPOINT,
            port=settings.elasticache.ELASTICACHE_PORT,
            db=settings.elasticache.ELASTICACHE_DB,
            decode_responses=True,
            max_connections=settings.elasticache.ELASTICACHE_MAX_CONNECTIONS,
            socket_timeout=settings.elasticache.ELASTICACHE_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.elasticache.ELASTICACHE_SOCKET_TIMEOUT,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        logger.info(
            "elasticache_connection_pool_created",
            host=settings.elasticache.ELASTICACHE_ENDPOINT,
            port=settings.elasticache.ELASTICACHE_PORT,
        )

    _redis_client = Redis(connection_pool=_connection_pool)
    return _redis_client


async def close_elasticache_client() -> None:
    """Close the shared client and release its connection pool."""
    global _connection_pool, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    if _connection_pool is not None:
        await _connection_pool.disconnect()
        _connection_pool = None
    logger.info("elasticache_client_closed")


async def health_check(client: Optional[Redis] = None) -> OperationResult:
    """Check ElastiCache connection health.

    Args:
        client: Optional client to check. Defaults to the shared client.

    Returns:
        OperationResult: Success if healthy, error otherwise
    """
    try:
        redis_client = client if client is not None else get_elasticache_client()
        await redis_client.ping()

        logger.debug("elasticache_health_check_success")

        return OperationResult.success(
            message="ElastiCache connection healthy",
        )

    except (ConnectionError, TimeoutError) as e:
        logger.error(
            "elasticache_health_check_connection_error",
            error=str(e),
        )
        return OperationResult.transient_error(
            message=f"ElastiCache connection error: {str(e)}",
            error_code="CONNECTION_ERROR",
        )

    except RedisError as e:
        logger.error(
            "elasticache_health_check_error",
            error=str(e),
        )
        return OperationResult.permanent_error(
            message=f"ElastiCache error: {str(e)}",
            error_code="REDIS_ERROR",
        )
