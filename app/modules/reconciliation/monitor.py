"""Health and metrics monitor for the reconciliation engine.

Combines queue-side statistics from the store with in-process execution
outcomes recorded by the orchestrator, and reduces them to a three-level
health status per subsystem.
"""

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple, Union

from infrastructure.logging import get_module_logger
from infrastructure.metrics import InMemoryMetricsCollector, MetricsCollector
from modules.reconciliation.config import ReconciliationConfig
from modules.reconciliation.models import (
    HealthCheck,
    HealthLevel,
    HealthStatus,
    SyncMetrics,
    SyncOperation,
)
from modules.reconciliation.queue import ReconciliationQueue

logger = get_module_logger()

# Sync health is only judged once this many outcomes have been recorded.
MIN_SYNC_SAMPLES = 10

CRITICAL_SUCCESS_RATE = 0.8
DEGRADED_AVG_DURATION_MS = 5000
CRITICAL_AVG_DURATION_MS = 10000
DEGRADED_FAILED_COUNT = 20
CRITICAL_FAILED_COUNT = 100
CRITICAL_QUEUE_FACTOR = 5
CRITICAL_AGE_FACTOR = 3


class ReconciliationMonitor:
    """Observes the queue and execution outcomes.

    Queue health:
        UNHEALTHY: backlog > 5 x queue_size_threshold, more than 100
            dead-lettered operations, or oldest pending age above
            3 x operation_age_threshold_ms (30 minutes by default)
        DEGRADED: backlog > queue_size_threshold, more than 20 dead-lettered
            operations, or oldest pending age above operation_age_threshold_ms

    Sync health (evaluated from 10 samples on):
        UNHEALTHY: success rate < 0.8 or average duration > 10s
        DEGRADED: success rate < success_rate_threshold or average duration > 5s
    """

    def __init__(
        self,
        queue: ReconciliationQueue,
        config: Optional[ReconciliationConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.queue = queue
        self.config = config or queue.config
        self.metrics = metrics or InMemoryMetricsCollector()
        self._health_task: Optional[asyncio.Task] = None
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._success_count = 0
        self._failure_count = 0
        self._retry_count = 0
        self._total_duration_ms = 0.0
        self._operations_by_type: Counter = Counter()
        self._errors_by_type: Counter = Counter()

    @property
    def operation_count(self) -> int:
        return self._success_count + self._failure_count

    @property
    def success_rate(self) -> float:
        if self.operation_count == 0:
            return 1.0
        return self._success_count / self.operation_count

    @property
    def avg_duration_ms(self) -> float:
        if self.operation_count == 0:
            return 0.0
        return self._total_duration_ms / self.operation_count

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_sync_success(self, operation: SyncOperation, duration_ms: float) -> None:
        """Record a successful execution."""
        operation_type = operation.type.value
        self._success_count += 1
        self._total_duration_ms += duration_ms
        self._operations_by_type[operation_type] += 1

        self.metrics.record_counter("sync.operations.success", operation_type=operation_type)
        self.metrics.record_timer("sync.operation.duration", duration_ms)
        self.metrics.record_timer(
            f"sync.operation.{operation_type.lower()}.duration", duration_ms
        )

        logger.debug(
            "sync_operation_succeeded",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation_type,
            duration_ms=duration_ms,
            attempt=operation.attempt,
        )

    def record_sync_failure(
        self,
        operation: SyncOperation,
        error: Union[BaseException, str],
        duration_ms: float,
        retried: bool = False,
    ) -> None:
        """Record a failed execution.

        Args:
            operation: The operation that failed
            error: Exception raised by the identity provider adapter
            duration_ms: Time spent in the adapter call
            retried: True when the queue scheduled another attempt
        """
        operation_type = operation.type.value
        error_type = "Unknown" if isinstance(error, str) else type(error).__name__

        self._failure_count += 1
        self._total_duration_ms += duration_ms
        self._operations_by_type[operation_type] += 1
        self._errors_by_type[error_type] += 1
        if retried:
            self._retry_count += 1

        self.metrics.record_counter("sync.operations.failure", operation_type=operation_type)
        self.metrics.record_counter(f"sync.operations.failure.{error_type}")
        self.metrics.record_timer("sync.operation.duration", duration_ms)

        logger.warning(
            "sync_operation_failed",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation_type,
            duration_ms=duration_ms,
            attempt=operation.attempt,
            error=str(error),
            error_type=error_type,
            retried=retried,
        )

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_queue_health(self) -> HealthCheck:
        """Evaluate queue backlog, dead-letter size and oldest pending age."""
        try:
            stats = await self.queue.get_stats()
        except Exception as e:
            logger.error("queue_health_check_failed", error=str(e))
            return HealthCheck(
                status=HealthLevel.UNHEALTHY,
                message=f"Queue health check failed: {e}",
            )

        if not stats.available:
            return HealthCheck(
                status=HealthLevel.UNHEALTHY,
                message="Queue statistics unavailable",
            )

        threshold = self.config.queue_size_threshold
        age_threshold_ms = self.config.operation_age_threshold_ms
        findings: List[Tuple[HealthLevel, str]] = []

        if stats.backlog > threshold * CRITICAL_QUEUE_FACTOR:
            findings.append(
                (HealthLevel.UNHEALTHY, f"Queue size critical: {stats.backlog} operations")
            )
        elif stats.backlog > threshold:
            findings.append(
                (HealthLevel.DEGRADED, f"Queue size elevated: {stats.backlog} operations")
            )

        age_minutes = stats.oldest_pending_age_ms / 60000
        if stats.oldest_pending_age_ms > age_threshold_ms * CRITICAL_AGE_FACTOR:
            findings.append(
                (
                    HealthLevel.UNHEALTHY,
                    f"Oldest operation is {age_minutes:.1f} minutes old",
                )
            )
        elif stats.oldest_pending_age_ms > age_threshold_ms:
            findings.append(
                (
                    HealthLevel.DEGRADED,
                    f"Oldest operation is {age_minutes:.1f} minutes old",
                )
            )

        if stats.failed > CRITICAL_FAILED_COUNT:
            findings.append(
                (
                    HealthLevel.UNHEALTHY,
                    f"{stats.failed} operations in dead letter queue",
                )
            )
        elif stats.failed > DEGRADED_FAILED_COUNT:
            findings.append(
                (HealthLevel.DEGRADED, f"{stats.failed} failed operations")
            )

        return HealthCheck(
            status=HealthLevel.worst(*(level for level, _ in findings)),
            message="; ".join(message for _, message in findings) or "Queue is healthy",
            metrics={
                "pending": stats.pending,
                "processing": stats.processing,
                "retrying": stats.retrying,
                "failed": stats.failed,
                "backlog": stats.backlog,
                "oldest_pending_age_ms": stats.oldest_pending_age_ms,
            },
        )

    async def check_sync_health(self) -> HealthCheck:
        """Evaluate success rate and average duration of recorded executions."""
        success_rate = self.success_rate
        avg_duration_ms = self.avg_duration_ms
        findings: List[Tuple[HealthLevel, str]] = []

        if self.operation_count >= MIN_SYNC_SAMPLES:
            if success_rate < CRITICAL_SUCCESS_RATE:
                findings.append(
                    (HealthLevel.UNHEALTHY, f"Low success rate: {success_rate:.1%}")
                )
            elif success_rate < self.config.success_rate_threshold:
                findings.append(
                    (
                        HealthLevel.DEGRADED,
                        f"Success rate below threshold: {success_rate:.1%}",
                    )
                )

            if avg_duration_ms > CRITICAL_AVG_DURATION_MS:
                findings.append(
                    (
                        HealthLevel.UNHEALTHY,
                        f"High average duration: {avg_duration_ms / 1000:.1f}s",
                    )
                )
            elif avg_duration_ms > DEGRADED_AVG_DURATION_MS:
                findings.append(
                    (
                        HealthLevel.DEGRADED,
                        f"Elevated average duration: {avg_duration_ms / 1000:.1f}s",
                    )
                )

        return HealthCheck(
            status=HealthLevel.worst(*(level for level, _ in findings)),
            message="; ".join(message for _, message in findings)
            or "Sync operations are healthy",
            metrics={
                "success_rate": success_rate,
                "avg_duration_ms": avg_duration_ms,
                "total_operations": self.operation_count,
                "success_count": self._success_count,
                "failure_count": self._failure_count,
            },
        )

    async def get_overall_health(self) -> HealthStatus:
        """Worst of the queue and sync checks. Exports the health gauges."""
        queue_health = await self.check_queue_health()
        sync_health = await self.check_sync_health()
        overall = HealthLevel.worst(queue_health.status, sync_health.status)

        self.metrics.record_gauge("sync.health.overall", overall.gauge_value)
        self.metrics.record_gauge("sync.health.queue", queue_health.status.gauge_value)
        self.metrics.record_gauge("sync.health.sync", sync_health.status.gauge_value)

        if overall is HealthLevel.UNHEALTHY:
            logger.error(
                "sync_system_unhealthy",
                queue=queue_health.message,
                sync=sync_health.message,
            )
        elif overall is HealthLevel.DEGRADED:
            logger.warning(
                "sync_system_degraded",
                queue=queue_health.message,
                sync=sync_health.message,
            )

        return HealthStatus(overall=overall, queue=queue_health, sync=sync_health)

    async def should_alert(self) -> bool:
        health = await self.get_overall_health()
        return health.overall is HealthLevel.UNHEALTHY

    async def get_alert_details(self) -> str:
        """Human-readable summary of every unhealthy or degraded subsystem."""
        health = await self.get_overall_health()
        if health.overall is HealthLevel.HEALTHY:
            return "System is healthy"

        details = []
        if health.queue.status is not HealthLevel.HEALTHY:
            details.append(f"Queue: {health.queue.message}")
        if health.sync.status is not HealthLevel.HEALTHY:
            details.append(f"Sync: {health.sync.message}")
        return "; ".join(details)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_sync_metrics(self) -> SyncMetrics:
        operations_by_type: Dict[str, int] = {"CREATE": 0, "UPDATE": 0, "DELETE": 0}
        operations_by_type.update(self._operations_by_type)
        return SyncMetrics(
            total_operations=self.operation_count,
            successful_operations=self._success_count,
            failed_operations=self._failure_count,
            retried_operations=self._retry_count,
            success_rate=self.success_rate,
            avg_duration_ms=self.avg_duration_ms,
            operations_by_type=operations_by_type,
            errors_by_type=dict(self._errors_by_type),
        )

    def reset_metrics(self) -> None:
        self._reset_counters()
        logger.info("sync_metrics_reset")

    def get_metrics_summary(self) -> str:
        """One-line summary, e.g. ``Total: 10, Success: 9 (90.0%), ...``."""
        metrics = self.get_sync_metrics()
        return ", ".join(
            [
                f"Total: {metrics.total_operations}",
                f"Success: {metrics.successful_operations} ({metrics.success_rate:.1%})",
                f"Failed: {metrics.failed_operations}",
                f"Avg Duration: {metrics.avg_duration_ms / 1000:.2f}s",
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        metrics = self.get_sync_metrics()
        return {
            "total_operations": metrics.total_operations,
            "successful_operations": metrics.successful_operations,
            "failed_operations": metrics.failed_operations,
            "retried_operations": metrics.retried_operations,
            "success_rate": metrics.success_rate,
            "avg_duration_ms": metrics.avg_duration_ms,
            "operations_by_type": metrics.operations_by_type,
            "errors_by_type": metrics.errors_by_type,
        }

    # ------------------------------------------------------------------
    # Periodic health checks
    # ------------------------------------------------------------------

    @property
    def health_checks_running(self) -> bool:
        return self._health_task is not None and not self._health_task.done()

    def start_health_checks(self) -> asyncio.Task:
        """Run ``get_overall_health`` every ``health_check_interval_ms``.

        Must be called from a running event loop. Calling it again while the
        checks are running returns the existing task.
        """
        if self._health_task is not None and not self._health_task.done():
            return self._health_task

        self._health_task = asyncio.create_task(self._run_health_checks())
        logger.info(
            "health_checks_started",
            interval_ms=self.config.health_check_interval_ms,
        )
        return self._health_task

    async def stop_health_checks(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("health_checks_stopped")

    async def _run_health_checks(self) -> None:
        interval = self.config.health_check_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                await self.get_overall_health()
            except Exception as e:
                logger.error("health_check_failed", error=str(e))
