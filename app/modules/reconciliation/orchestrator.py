"""Reconciliation orchestrator.

Public entry point of the engine. Callers enqueue changes and return
immediately; a polling worker drains the queue against the identity provider
adapter and reports outcomes to the monitor.

Each worker tick dequeues up to ``worker_concurrency`` operations, groups
them by user and runs the groups concurrently. Operations for the same user
within a tick run one after another in dequeue order. The tick waits for
every group before the next one starts, and never raises.

Example:
    orchestrator = ReconciliationOrchestrator(redis, adapter, config)
    await orchestrator.start_worker()

    operation_id = await orchestrator.queue_user_update("user-123", payload)

    await orchestrator.dispose()
"""

import asyncio
import random
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from redis.asyncio import Redis

from infrastructure.logging import bind_operation_context, get_module_logger
from infrastructure.metrics import InMemoryMetricsCollector, MetricsCollector
from infrastructure.operations import OperationStatus, classify_sync_error
from modules.reconciliation.adapters import IdentityProviderAdapter
from modules.reconciliation.config import ReconciliationConfig
from modules.reconciliation.errors import InvalidOperationError, OperationTimeoutError
from modules.reconciliation.models import (
    HealthStatus,
    QueueStats,
    SyncOperation,
    SyncOperationStatus,
    SyncOperationType,
    SyncResult,
    SyncStatus,
)
from modules.reconciliation.monitor import ReconciliationMonitor
from modules.reconciliation.queue import ReconciliationQueue

logger = get_module_logger()


class ReconciliationOrchestrator:
    """Queues user changes and propagates them to the identity provider.

    Attributes:
        adapter: Identity provider adapter
        config: ReconciliationConfig shared with the queue and monitor
        metrics: MetricsCollector shared with the queue and monitor
        queue: ReconciliationQueue holding the operations
        monitor: ReconciliationMonitor observing queue and outcomes
    """

    def __init__(
        self,
        redis: Redis,
        adapter: IdentityProviderAdapter,
        config: Optional[ReconciliationConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        queue: Optional[ReconciliationQueue] = None,
        monitor: Optional[ReconciliationMonitor] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            redis: Async Redis client (decode_responses=True)
            adapter: IdentityProviderAdapter implementation
            config: Optional ReconciliationConfig. If not provided, uses defaults.
            metrics: Optional MetricsCollector. Defaults to an in-memory collector.
            queue: Optional pre-built queue (tests)
            monitor: Optional pre-built monitor (tests)
            clock: Clock passed to the queue when it is built here
            rng: Jitter random source passed to the queue when it is built here
        """
        self.adapter = adapter
        self.config = config or ReconciliationConfig()
        self.metrics = metrics or InMemoryMetricsCollector()
        self.queue = queue or ReconciliationQueue(
            redis, self.config, self.metrics, clock=clock, rng=rng
        )
        self.monitor = monitor or ReconciliationMonitor(
            self.queue, self.config, self.metrics
        )

        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._in_flight: Set[asyncio.Task] = set()
        self._shutting_down = False
        self._disposed = False

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def queue_user_create(self, user_id: str, data: Dict[str, Any]) -> str:
        """Queue creation of the user in the identity provider.

        Returns:
            The operation id, once persisted

        Raises:
            QueueCapacityError: If the queue is full
            InvalidOperationError: If data is missing
        """
        return await self._queue(user_id, SyncOperationType.CREATE, data)

    async def queue_user_update(self, user_id: str, data: Dict[str, Any]) -> str:
        """Queue an update of the user in the identity provider."""
        return await self._queue(user_id, SyncOperationType.UPDATE, data)

    async def queue_user_delete(self, user_id: str) -> str:
        """Queue deletion of the user from the identity provider."""
        return await self._queue(user_id, SyncOperationType.DELETE, None)

    async def _queue(
        self,
        user_id: str,
        operation_type: SyncOperationType,
        data: Optional[Dict[str, Any]],
    ) -> str:
        try:
            return await self.queue.enqueue(
                user_id, operation_type, data, operation_type.default_priority
            )
        except Exception as e:
            logger.error(
                "user_sync_queue_failed",
                user_id=user_id,
                operation_type=operation_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    async def start_worker(self) -> None:
        """Start the polling worker and the periodic health checks.

        Operations left in the processing set by a crashed process are moved
        back to pending first. Calling this while the worker runs is a no-op.
        """
        if self._disposed:
            raise RuntimeError("Orchestrator has been disposed")
        if self.is_running:
            logger.warning("sync_worker_already_running")
            return

        try:
            await self.queue.recover_stale_operations(
                self.config.stale_processing_threshold_ms
            )
        except Exception as e:
            logger.error("stale_operation_recovery_failed", error=str(e))

        self._shutting_down = False
        self._stop_event.clear()
        self._worker_task = asyncio.create_task(self._run_worker())
        self.monitor.start_health_checks()
        self.metrics.record_gauge("sync.worker.running", 1)

        logger.info(
            "sync_worker_started",
            concurrency=self.config.worker_concurrency,
            poll_interval_ms=self.config.worker_poll_interval_ms,
        )

    async def stop_worker(self) -> None:
        """Stop polling and wait for in-flight operations.

        No new tick starts once this is called. In-flight executions are given
        ``shutdown_grace_period_ms`` to finish; they are not cancelled, and
        any still running afterwards are left to complete on their own.
        """
        if self._worker_task is None and not self._in_flight:
            return

        logger.info("sync_worker_stopping", in_flight=len(self._in_flight))
        self._shutting_down = True
        self._stop_event.set()
        await self.monitor.stop_health_checks()

        pending_tasks: Set[asyncio.Task] = set(self._in_flight)
        if self._worker_task is not None:
            pending_tasks.add(self._worker_task)

        if pending_tasks:
            _, still_running = await asyncio.wait(
                pending_tasks, timeout=self.config.shutdown_grace_period_ms / 1000
            )
            if still_running:
                logger.warning(
                    "sync_worker_grace_period_elapsed",
                    still_running=len(still_running),
                )

        worker_task, self._worker_task = self._worker_task, None
        if worker_task is not None and not worker_task.done():
            worker_task.cancel()
            try:
                await worker_task
            except asyncio.CancelledError:
                pass

        self._shutting_down = False
        self.metrics.record_gauge("sync.worker.running", 0)
        logger.info("sync_worker_stopped")

    async def dispose(self) -> None:
        """Stop everything. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        await self.stop_worker()
        await self.monitor.stop_health_checks()
        logger.info("reconciliation_orchestrator_disposed")

    async def _run_worker(self) -> None:
        interval = self.config.worker_poll_interval_ms / 1000
        while not self._shutting_down:
            await self.run_tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def run_tick(self) -> Dict[str, int]:
        """Run one worker tick.

        Dequeues up to ``worker_concurrency`` operations, executes them and
        waits for all of them. Never raises.

        Returns:
            Dictionary with tick statistics:
                - dequeued: Operations claimed this tick
                - succeeded: Operations applied to the identity provider
                - failed: Operations that failed (retried or dead-lettered)
        """
        stats = {"dequeued": 0, "succeeded": 0, "failed": 0}
        if self._shutting_down:
            return stats

        try:
            operations: List[SyncOperation] = []
            while len(operations) < self.config.worker_concurrency:
                operation = await self.queue.dequeue()
                if operation is None:
                    break
                operations.append(operation)

            if not operations:
                return stats
            stats["dequeued"] = len(operations)

            by_user: Dict[str, List[SyncOperation]] = {}
            for operation in operations:
                by_user.setdefault(operation.user_id, []).append(operation)

            tasks = [
                self._track(asyncio.create_task(self._process_user_operations(batch)))
                for batch in by_user.values()
            ]
            done, _ = await asyncio.wait(tasks)

            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    logger.error("sync_tick_task_failed", error=str(error))
                    continue
                for result in task.result():
                    stats["succeeded" if result.success else "failed"] += 1
        except Exception as e:
            logger.error("sync_tick_failed", error=str(e), error_type=type(e).__name__)
            return stats

        logger.debug("sync_tick_completed", **stats)
        return stats

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _process_user_operations(
        self, operations: List[SyncOperation]
    ) -> List[SyncResult]:
        return [await self.process_operation(operation) for operation in operations]

    async def process_operation(self, operation: SyncOperation) -> SyncResult:
        """Execute one claimed operation and record its outcome.

        A DELETE rejected with NOT_FOUND counts as already applied.
        """
        with bind_operation_context(
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            attempt=operation.attempt,
        ):
            started = time.perf_counter()
            try:
                await self._execute(operation)
            except Exception as e:
                duration_ms = (time.perf_counter() - started) * 1000
                classification = classify_sync_error(e)
                if (
                    operation.type is SyncOperationType.DELETE
                    and classification.status is OperationStatus.NOT_FOUND
                ):
                    logger.info("user_already_deleted")
                    return await self._handle_success(operation, duration_ms)
                return await self._handle_failure(
                    operation,
                    e,
                    duration_ms,
                    recoverable=classification.is_recoverable,
                    error_code=classification.error_code,
                )

            duration_ms = (time.perf_counter() - started) * 1000
            return await self._handle_success(operation, duration_ms)

    async def _execute(self, operation: SyncOperation) -> None:
        timeout_ms = self.config.operation_timeout_ms
        try:
            await asyncio.wait_for(self._dispatch(operation), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(operation.id, timeout_ms) from e

    async def _dispatch(self, operation: SyncOperation) -> None:
        if operation.type is SyncOperationType.CREATE:
            if operation.data is None:
                raise InvalidOperationError("CREATE operation requires data")
            payload = dict(operation.data)
            payload.setdefault("id", operation.user_id)
            remote_id = await self.adapter.create_user(payload)
            logger.info("remote_user_created", remote_id=remote_id)
        elif operation.type is SyncOperationType.UPDATE:
            if operation.data is None:
                raise InvalidOperationError("UPDATE operation requires data")
            await self.adapter.update_user(operation.user_id, operation.data)
            logger.info("remote_user_updated")
        elif operation.type is SyncOperationType.DELETE:
            await self.adapter.delete_user(operation.user_id)
            logger.info("remote_user_deleted")
        else:
            raise InvalidOperationError(f"Unknown operation type: {operation.type}")

    async def _handle_success(
        self, operation: SyncOperation, duration_ms: float
    ) -> SyncResult:
        try:
            await self.queue.complete(operation.id, duration_ms)
        except Exception as e:
            # The id stays in the processing set and is recovered as stale.
            logger.error("operation_complete_failed", error=str(e))
        self.monitor.record_sync_success(operation, duration_ms)
        return SyncResult(
            operation=operation,
            success=True,
            duration_ms=duration_ms,
            final_status=SyncOperationStatus.COMPLETED,
        )

    async def _handle_failure(
        self,
        operation: SyncOperation,
        error: Exception,
        duration_ms: float,
        recoverable: bool,
        error_code: Optional[str],
    ) -> SyncResult:
        updated: Optional[SyncOperation] = None
        try:
            updated = await self.queue.fail(operation.id, error, recoverable)
        except Exception as e:
            logger.error("operation_fail_record_failed", error=str(e))

        final_status = updated.status if updated is not None else None
        self.monitor.record_sync_failure(
            operation,
            error,
            duration_ms,
            retried=final_status is SyncOperationStatus.RETRYING,
        )
        return SyncResult(
            operation=updated or operation,
            success=False,
            duration_ms=duration_ms,
            error=str(error) or type(error).__name__,
            error_code=error_code,
            recoverable=recoverable,
            final_status=final_status,
        )

    # ------------------------------------------------------------------
    # Status and operator actions
    # ------------------------------------------------------------------

    async def get_user_sync_status(self, user_id: str) -> SyncStatus:
        return await self.queue.get_user_sync_status(user_id)

    async def get_queue_stats(self) -> QueueStats:
        return await self.queue.get_stats()

    async def get_health_status(self) -> HealthStatus:
        return await self.monitor.get_overall_health()

    async def is_healthy(self) -> bool:
        health = await self.monitor.get_overall_health()
        return health.is_healthy

    async def should_alert(self) -> bool:
        return await self.monitor.should_alert()

    async def get_alert_details(self) -> str:
        return await self.monitor.get_alert_details()

    def get_metrics_summary(self) -> str:
        return self.monitor.get_metrics_summary()

    async def retry_failed_operations(self, limit: int = 10) -> int:
        """Re-enqueue up to ``limit`` dead-lettered operations with attempt 0.

        Returns:
            Number of operations re-enqueued
        """
        requeued = await self.queue.retry_failed(limit)
        logger.info("failed_operations_retried", count=requeued, limit=limit)
        return requeued

    async def clear_failed_operations(self) -> int:
        """Drop every dead-lettered operation.

        Returns:
            Number of operations removed
        """
        return await self.queue.clear_failed()
