"""ElastiCache (Redis/Valkey) integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class ElastiCacheSettings(IntegrationSettings):
    """Connection settings for the persistent store backing the reconciliation queue.

    Environment Variables:
        ELASTICACHE_ENABLED: Enable the Redis-backed store (default: True)
        ELASTICACHE_ENDPOINT: Host name of the Redis/Valkey endpoint
        ELASTICACHE_PORT: Port of the endpoint (default: 6379)
        ELASTICACHE_DB: Logical database index (default: 0)
        ELASTICACHE_MAX_CONNECTIONS: Connection pool size (default: 10)
        ELASTICACHE_SOCKET_TIMEOUT: Socket timeout in seconds (default: 5)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        host = settings.elasticache.ELASTICACHE_ENDPOINT
        port = settings.elasticache.ELASTICACHE_PORT
        ```
    """

    ELASTICACHE_ENABLED: bool = Field(default=True, alias="ELASTICACHE_ENABLED")
    ELASTICACHE_ENDPOINT: str = Field(default="localhost", alias="ELASTICACHE_ENDPOINT")
    ELASTICACHE_PORT: int = Field(default=6379, alias="ELASTICACHE_PORT")
    ELASTICACHE_DB: int = Field(default=0, alias="ELASTICACHE_DB")
    ELASTICACHE_MAX_CONNECTIONS: int = Field(
        default=10, alias="ELASTICACHE_MAX_CONNECTIONS"
    )
    ELASTICACHE_SOCKET_TIMEOUT: float = Field(
        default=5.0, alias="ELASTICACHE_SOCKET_TIMEOUT"
    )
