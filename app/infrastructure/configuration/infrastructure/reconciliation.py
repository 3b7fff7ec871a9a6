"""Reconciliation engine infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class ReconciliationSettings(InfrastructureSettings):
    """Configuration for the asynchronous user reconciliation engine.

    Controls the persistent sync queue, the background worker and the health
    monitor that keep the local user database and the identity provider
    consistent. All durations are milliseconds unless the name says seconds.

    Environment Variables:
        RECONCILIATION_MAX_QUEUE_SIZE: Max pending + retrying operations (default: 10000)
        RECONCILIATION_MAX_RETRIES: Attempts before dead-lettering (default: 5)
        RECONCILIATION_RETRY_BASE_DELAY_MS: First retry delay (default: 5000)
        RECONCILIATION_RETRY_MULTIPLIER: Backoff multiplier (default: 5)
        RECONCILIATION_RETRY_MAX_DELAY_MS: Backoff cap (default: 3600000 = 1h)
        RECONCILIATION_RETRY_JITTER_RATIO: Random jitter as a ratio of the delay (default: 0)
        RECONCILIATION_WORKER_CONCURRENCY: Operations executed per tick (default: 5)
        RECONCILIATION_WORKER_POLL_INTERVAL_MS: Delay between ticks (default: 1000)
        RECONCILIATION_HEALTH_CHECK_INTERVAL_MS: Periodic health check (default: 60000)
        RECONCILIATION_SUCCESS_RATE_THRESHOLD: Degraded below this rate (default: 0.95)
        RECONCILIATION_QUEUE_SIZE_THRESHOLD: Degraded above this backlog (default: 1000)
        RECONCILIATION_OPERATION_AGE_THRESHOLD_MS: Oldest pending age alarm (default: 600000)
        RECONCILIATION_KEY_PREFIX: Store key prefix (default: "sync:")
        RECONCILIATION_OPERATION_TIMEOUT_MS: Identity provider call timeout (default: 30000)
        RECONCILIATION_SHUTDOWN_GRACE_PERIOD_MS: Wait for in-flight work on stop (default: 5000)
        RECONCILIATION_OPERATION_TTL_SECONDS: Operation record TTL (default: 7 days)
        RECONCILIATION_STATUS_TTL_SECONDS: Per-user status TTL (default: 30 days)
        RECONCILIATION_DEAD_LETTER_MAX_SIZE: Dead-letter list cap (default: 10000)
        RECONCILIATION_DEAD_LETTER_TTL_SECONDS: Failed record TTL (default: 30 days)
        RECONCILIATION_STALE_PROCESSING_THRESHOLD_MS: Orphaned processing age (default: 300000)

    Exponential Backoff:
        Delay calculation: min(base_delay * multiplier ^ (attempt - 1), max_delay)

        Example with defaults (base=5000ms, multiplier=5, max=3600000ms):
            Attempt 1: 5000ms
            Attempt 2: 25000ms
            Attempt 3: 125000ms
            Attempt 4: 625000ms
            Attempt 5: 3125000ms
            Attempt 6+: 3600000ms (capped)

    Example:
        ```python
        from infrastructure.services import get_settings
        from modules.reconciliation import ReconciliationConfig

        settings = get_settings()
        config = ReconciliationConfig.from_settings(settings.reconciliation)
        ```
    """

    max_queue_size: int = Field(
        default=10000,
        alias="RECONCILIATION_MAX_QUEUE_SIZE",
        description="Maximum number of pending plus retrying operations",
    )
    max_retries: int = Field(
        default=5,
        alias="RECONCILIATION_MAX_RETRIES",
        description="Maximum attempts before an operation is dead-lettered",
    )
    retry_base_delay_ms: int = Field(
        default=5000,
        alias="RECONCILIATION_RETRY_BASE_DELAY_MS",
        description="Base delay for exponential backoff (milliseconds)",
    )
    retry_multiplier: float = Field(
        default=5.0,
        alias="RECONCILIATION_RETRY_MULTIPLIER",
        description="Exponential backoff multiplier",
    )
    retry_max_delay_ms: int = Field(
        default=3_600_000,
        alias="RECONCILIATION_RETRY_MAX_DELAY_MS",
        description="Maximum backoff delay (milliseconds, 1 hour)",
    )
    retry_jitter_ratio: float = Field(
        default=0.0,
        alias="RECONCILIATION_RETRY_JITTER_RATIO",
        description="Random jitter added to each delay, as a ratio of the delay",
    )
    worker_concurrency: int = Field(
        default=5,
        alias="RECONCILIATION_WORKER_CONCURRENCY",
        description="Maximum operations executed concurrently per worker tick",
    )
    worker_poll_interval_ms: int = Field(
        default=1000,
        alias="RECONCILIATION_WORKER_POLL_INTERVAL_MS",
        description="Delay between worker ticks (milliseconds)",
    )
    health_check_interval_ms: int = Field(
        default=60000,
        alias="RECONCILIATION_HEALTH_CHECK_INTERVAL_MS",
        description="Interval between periodic health checks (milliseconds)",
    )
    success_rate_threshold: float = Field(
        default=0.95,
        alias="RECONCILIATION_SUCCESS_RATE_THRESHOLD",
        description="Success rate below which sync health is degraded",
    )
    queue_size_threshold: int = Field(
        default=1000,
        alias="RECONCILIATION_QUEUE_SIZE_THRESHOLD",
        description="Backlog above which queue health is degraded",
    )
    operation_age_threshold_ms: int = Field(
        default=600000,
        alias="RECONCILIATION_OPERATION_AGE_THRESHOLD_MS",
        description="Oldest pending operation age reported by the queue health check",
    )
    key_prefix: str = Field(
        default="sync:",
        alias="RECONCILIATION_KEY_PREFIX",
        description="Prefix applied to every store key",
    )
    operation_timeout_ms: int = Field(
        default=30000,
        alias="RECONCILIATION_OPERATION_TIMEOUT_MS",
        description="Timeout applied to each identity provider call (milliseconds)",
    )
    shutdown_grace_period_ms: int = Field(
        default=5000,
        alias="RECONCILIATION_SHUTDOWN_GRACE_PERIOD_MS",
        description="Time to wait for in-flight operations when stopping the worker",
    )
    operation_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        alias="RECONCILIATION_OPERATION_TTL_SECONDS",
        description="Time-to-live for operation records (seconds, 7 days)",
    )
    status_ttl_seconds: int = Field(
        default=30 * 24 * 60 * 60,
        alias="RECONCILIATION_STATUS_TTL_SECONDS",
        description="Time-to-live for per-user sync status (seconds, 30 days)",
    )
    dead_letter_max_size: int = Field(
        default=10000,
        alias="RECONCILIATION_DEAD_LETTER_MAX_SIZE",
        description="Maximum number of ids retained in the dead-letter list",
    )
    dead_letter_ttl_seconds: int = Field(
        default=30 * 24 * 60 * 60,
        alias="RECONCILIATION_DEAD_LETTER_TTL_SECONDS",
        description="Time-to-live for dead-lettered records (seconds, 30 days)",
    )
    stale_processing_threshold_ms: int = Field(
        default=300000,
        alias="RECONCILIATION_STALE_PROCESSING_THRESHOLD_MS",
        description="Age after which a processing operation is considered orphaned",
    )
