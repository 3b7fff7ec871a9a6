"""Reconciliation engine configuration.

This module defines the runtime configuration shared by the queue, the
monitor and the orchestrator.
"""

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infrastructure.configuration.infrastructure.reconciliation import (
        ReconciliationSettings,
    )


@dataclass
class ReconciliationConfig:
    """Configuration for the reconciliation engine.

    All durations are milliseconds unless the name says seconds.

    Attributes:
        max_queue_size: Maximum pending plus retrying operations
        max_retries: Attempts before an operation is dead-lettered
        retry_base_delay_ms: Delay before the first retry
        retry_multiplier: Exponential backoff multiplier
        retry_max_delay_ms: Cap applied to every computed delay
        retry_jitter_ratio: Random jitter as a ratio of the delay (0 disables)
        worker_concurrency: Operations executed concurrently per tick
        worker_poll_interval_ms: Delay between worker ticks
        health_check_interval_ms: Interval of the periodic health check
        success_rate_threshold: Sync health is degraded below this rate
        queue_size_threshold: Queue health is degraded above this backlog
        operation_age_threshold_ms: Oldest pending age tolerated by the queue
            health check
        key_prefix: Prefix applied to every store key
        operation_timeout_ms: Timeout for each identity provider call
        shutdown_grace_period_ms: Wait for in-flight operations on stop
        operation_ttl_seconds: TTL of operation records
        status_ttl_seconds: TTL of per-user sync status
        dead_letter_max_size: Ids retained in the dead-letter list
        dead_letter_ttl_seconds: TTL of dead-lettered records
        stale_processing_threshold_ms: Age after which a processing
            operation is treated as orphaned by a crashed worker

    Example:
        # Default configuration
        config = ReconciliationConfig()

        # From environment-backed settings
        config = ReconciliationConfig.from_settings(settings.reconciliation)

        # Custom configuration
        config = ReconciliationConfig(max_retries=3, worker_concurrency=10)
    """

    max_queue_size: int = 10000
    max_retries: int = 5
    retry_base_delay_ms: int = 5000
    retry_multiplier: float = 5.0
    retry_max_delay_ms: int = 3_600_000  # 1 hour
    retry_jitter_ratio: float = 0.0
    worker_concurrency: int = 5
    worker_poll_interval_ms: int = 1000
    health_check_interval_ms: int = 60000
    success_rate_threshold: float = 0.95
    queue_size_threshold: int = 1000
    operation_age_threshold_ms: int = 600000  # 10 minutes
    key_prefix: str = "sync:"
    operation_timeout_ms: int = 30000
    shutdown_grace_period_ms: int = 5000
    operation_ttl_seconds: int = 7 * 24 * 60 * 60
    status_ttl_seconds: int = 30 * 24 * 60 * 60
    dead_letter_max_size: int = 10000
    dead_letter_ttl_seconds: int = 30 * 24 * 60 * 60
    stale_processing_threshold_ms: int = 300000  # 5 minutes

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for name in (
            "max_queue_size",
            "max_retries",
            "retry_base_delay_ms",
            "worker_concurrency",
            "worker_poll_interval_ms",
            "health_check_interval_ms",
            "queue_size_threshold",
            "operation_age_threshold_ms",
            "operation_timeout_ms",
            "operation_ttl_seconds",
            "status_ttl_seconds",
            "dead_letter_max_size",
            "dead_letter_ttl_seconds",
            "stale_processing_threshold_ms",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.shutdown_grace_period_ms < 0:
            raise ValueError("shutdown_grace_period_ms must be non-negative")
        if self.retry_multiplier < 1:
            raise ValueError("retry_multiplier must be >= 1")
        if self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ValueError("retry_max_delay_ms must be >= retry_base_delay_ms")
        if not 0 <= self.retry_jitter_ratio < 1:
            raise ValueError("retry_jitter_ratio must be in [0, 1)")
        if not 0 < self.success_rate_threshold <= 1:
            raise ValueError("success_rate_threshold must be in (0, 1]")
        if not self.key_prefix:
            raise ValueError("key_prefix is required")

    @classmethod
    def from_settings(
        cls, settings: "ReconciliationSettings"
    ) -> "ReconciliationConfig":
        """Build a config from ReconciliationSettings (same field names)."""
        return cls(**{f.name: getattr(settings, f.name) for f in fields(cls)})
