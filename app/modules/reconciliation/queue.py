"""Persistent reconciliation queue backed by Redis.

The queue owns every piece of queue state in the store: pending operations
(FIFO list plus priority sorted set), retry-scheduled operations (sorted set
scored by due time), the processing set and the dead-letter list. Every
state transition uses single-key atomic primitives so several worker
processes can share one store without dequeuing the same operation twice.

Dequeue order:
    1. Retry-scheduled operations whose due time has passed, oldest first
    2. Prioritized operations, highest priority first (DELETE > CREATE)
    3. FIFO operations, oldest first

Store errors are logged and re-raised from write paths (enqueue, complete,
fail, clear, retry_failed, clear_failed) and turned into empty results on
read paths.
"""

import asyncio
import random
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from redis.asyncio import Redis
from redis.exceptions import RedisError

from infrastructure.logging import get_module_logger
from infrastructure.metrics import InMemoryMetricsCollector, MetricsCollector
from modules.reconciliation.backoff import calculate_retry_delay
from modules.reconciliation.config import ReconciliationConfig
from modules.reconciliation.errors import (
    InvalidOperationError,
    QueueCapacityError,
    SerializationError,
)
from modules.reconciliation.keys import MAX_PRIORITY, QueueKeys, priority_score
from modules.reconciliation.models import (
    QueueStats,
    SyncOperation,
    SyncOperationStatus,
    SyncOperationType,
    SyncStatus,
    UserSyncState,
    generate_operation_id,
    operation_id_timestamp,
    to_epoch_ms,
    utc_now,
    validate_operation,
)
from modules.reconciliation.serialization import (
    decode_operation,
    encode_operation,
    read_user_id,
)

logger = get_module_logger()

# Concurrent workers may range the same ready retry id; the loser retries.
_RETRY_CLAIM_ATTEMPTS = 5

_SCAN_BATCH = 500


def _error_message(error: Union[BaseException, str]) -> str:
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


class ReconciliationQueue:
    """Redis-backed priority and retry queue for sync operations.

    The client must be created with ``decode_responses=True``.

    Attributes:
        redis: Async Redis client
        config: ReconciliationConfig controlling capacity, retries and TTLs
        metrics: MetricsCollector receiving queue metrics
        keys: Store key layout for ``config.key_prefix``
    """

    def __init__(
        self,
        redis: Redis,
        config: Optional[ReconciliationConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the queue.

        Args:
            redis: Async Redis client (decode_responses=True)
            config: Optional ReconciliationConfig. If not provided, uses defaults.
            metrics: Optional MetricsCollector. Defaults to an in-memory collector.
            clock: Returns the current UTC time. Injectable for tests.
            rng: Random source for backoff jitter. Injectable for tests.
        """
        self.redis = redis
        self.config = config or ReconciliationConfig()
        self.metrics = metrics or InMemoryMetricsCollector()
        self.keys = QueueKeys(self.config.key_prefix)
        self._clock = clock or utc_now
        self._rng = rng

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Write paths
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        user_id: str,
        operation_type: SyncOperationType,
        data: Optional[Dict[str, Any]] = None,
        priority: int = 0,
    ) -> str:
        """Persist a new operation and index it for dequeue.

        Operations with ``priority > 0`` go to the priority set, all others
        to the FIFO list.

        Args:
            user_id: Subject user
            operation_type: CREATE, UPDATE or DELETE
            data: Payload (None only for DELETE)
            priority: Dequeue priority, at most 100

        Returns:
            The new operation id

        Raises:
            InvalidOperationError: If the operation is malformed
            QueueCapacityError: If pending + retrying >= max_queue_size
            RedisError: If the store is unreachable
        """
        validate_operation(user_id, operation_type, data)
        if priority > MAX_PRIORITY:
            raise InvalidOperationError(f"priority must be at most {MAX_PRIORITY}")

        started = time.perf_counter()
        try:
            backlog = await self.get_queue_size()
            if backlog >= self.config.max_queue_size:
                self.metrics.record_counter(
                    "sync.queue.enqueue.error", reason="capacity"
                )
                logger.warning(
                    "sync_queue_full",
                    user_id=user_id,
                    operation_type=operation_type.value,
                    backlog=backlog,
                    max_queue_size=self.config.max_queue_size,
                )
                raise QueueCapacityError(backlog, self.config.max_queue_size)

            now = self.now()
            operation = SyncOperation(
                id=generate_operation_id(now),
                user_id=user_id,
                type=operation_type,
                data=data,
                max_attempts=self.config.max_retries,
                created_at=now,
                scheduled_for=now,
                priority=priority,
            )
            await self._save(operation)
            if priority > 0:
                await self.redis.zadd(
                    self.keys.priority,
                    {operation.id: priority_score(priority, to_epoch_ms(now))},
                )
            else:
                await self.redis.rpush(self.keys.pending, operation.id)
            await self.redis.hincrby(self.keys.stats, "total", 1)
            await self._mark_user_pending(operation)
        except RedisError as e:
            self.metrics.record_counter("sync.queue.enqueue.error", reason="store")
            logger.error(
                "operation_enqueue_failed",
                user_id=user_id,
                operation_type=operation_type.value,
                error=str(e),
            )
            raise

        self.metrics.record_timer(
            "sync.queue.enqueue",
            (time.perf_counter() - started) * 1000,
            operation_type=operation_type.value,
        )
        self.metrics.record_counter(
            "sync.operations.enqueued", operation_type=operation_type.value
        )
        logger.info(
            "operation_enqueued",
            operation_id=operation.id,
            user_id=user_id,
            operation_type=operation_type.value,
            priority=priority,
        )
        return operation.id

    async def complete(
        self, operation_id: str, duration_ms: Optional[float] = None
    ) -> bool:
        """Mark an operation as successfully applied and delete it.

        Safe to call twice or with an unknown id: only the first call for an
        existing operation changes any state.

        Args:
            operation_id: Id returned by ``enqueue``
            duration_ms: Optional execution time, folded into the average

        Returns:
            True if this call completed the operation, False if it was a no-op
        """
        try:
            await self.redis.srem(self.keys.processing, operation_id)
            operation = await self._load(operation_id)
            if operation is None:
                logger.debug(
                    "operation_complete_skipped",
                    operation_id=operation_id,
                    reason="not_found",
                )
                return False

            # Only the caller that actually deletes the record records success.
            if not await self.redis.delete(self.keys.operation(operation_id)):
                return False

            await self.redis.hincrby(self.keys.stats, "successful", 1)
            if duration_ms is not None:
                await self.redis.hincrby(
                    self.keys.stats, "duration_total_ms", int(round(duration_ms))
                )
                await self.redis.hincrby(self.keys.stats, "duration_samples", 1)
            await self._mark_user_synced(operation)
        except RedisError as e:
            logger.error(
                "operation_complete_failed", operation_id=operation_id, error=str(e)
            )
            raise

        operation.status = SyncOperationStatus.COMPLETED
        self.metrics.record_counter(
            "sync.operations.completed", operation_type=operation.type.value
        )
        logger.info(
            "operation_completed",
            operation_id=operation_id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            attempt=operation.attempt,
            duration_ms=duration_ms,
        )
        return True

    async def fail(
        self,
        operation_id: str,
        error: Union[BaseException, str],
        recoverable: bool,
    ) -> Optional[SyncOperation]:
        """Record a failed execution.

        Increments ``attempt``. Recoverable failures with attempts left are
        scheduled for retry with exponential backoff; everything else is
        moved to the dead-letter list.

        Only a claimed operation can fail: when the id is not in the
        processing set (failed or completed already, never dequeued, or
        recovered as stale) the call changes nothing.

        Args:
            operation_id: Id of the failed operation
            error: Exception or message describing the failure
            recoverable: Whether the failure is transient

        Returns:
            The updated operation (status RETRYING or FAILED), or None if the
            operation was not claimed or no longer exists
        """
        message = _error_message(error)
        try:
            # Only the caller that removes the id from processing re-indexes it.
            if not await self.redis.srem(self.keys.processing, operation_id):
                logger.warning(
                    "operation_fail_skipped",
                    operation_id=operation_id,
                    reason="not_processing",
                    error=message,
                )
                return None
            operation = await self._load(operation_id)
            if operation is None:
                logger.warning(
                    "operation_fail_skipped",
                    operation_id=operation_id,
                    reason="not_found",
                    error=message,
                )
                return None

            operation.attempt += 1
            operation.last_error = message
            operation.started_at = None

            if recoverable and operation.can_retry:
                await self._schedule_retry(operation)
            else:
                await self._dead_letter(operation, recoverable)
        except RedisError as e:
            logger.error(
                "operation_fail_update_failed", operation_id=operation_id, error=str(e)
            )
            raise

        return operation

    async def clear(self) -> None:
        """Delete all queue state under the key prefix.

        Removes every queue structure, the lifetime counters, every operation
        record (dead-lettered ones included) and every per-user status, so
        users report SYNCED with zero counts afterwards.
        """
        try:
            await self.redis.delete(*self.keys.queue_keys())
            records = await self._delete_matching(self.keys.operation("*"))
            statuses = await self._delete_matching(self.keys.status("*"))
        except RedisError as e:
            logger.error("sync_queue_clear_failed", error=str(e))
            raise
        logger.warning(
            "sync_queue_cleared",
            key_prefix=self.config.key_prefix,
            records=records,
            user_statuses=statuses,
        )

    async def recover_stale_operations(
        self, older_than_ms: Optional[int] = None
    ) -> int:
        """Move operations orphaned in the processing set back to pending.

        An operation is stale when it was claimed more than ``older_than_ms``
        ago (default: ``stale_processing_threshold_ms``), typically because
        the worker process that claimed it crashed. Recovered operations keep
        their attempt count.

        Returns:
            Number of operations re-queued by this call
        """
        threshold_ms = (
            older_than_ms
            if older_than_ms is not None
            else self.config.stale_processing_threshold_ms
        )
        now = self.now()
        recovered = 0

        try:
            operation_ids = await self.redis.smembers(self.keys.processing)
            for operation_id in operation_ids:
                operation = await self._load(operation_id)
                if operation is None:
                    await self.redis.srem(self.keys.processing, operation_id)
                    continue
                started_at = operation.started_at or operation.scheduled_for
                if now - started_at < timedelta(milliseconds=threshold_ms):
                    continue
                # Another instance may be recovering the same id.
                if not await self.redis.srem(self.keys.processing, operation_id):
                    continue

                operation.status = SyncOperationStatus.PENDING
                operation.started_at = None
                await self._save(operation)
                await self.redis.rpush(self.keys.pending, operation_id)
                recovered += 1
                logger.warning(
                    "stale_operation_recovered",
                    operation_id=operation_id,
                    user_id=operation.user_id,
                    operation_type=operation.type.value,
                    started_at=started_at.isoformat(),
                )
        except RedisError as e:
            logger.error("stale_operation_recovery_failed", error=str(e))
            raise

        if recovered:
            logger.info("stale_operations_recovered", count=recovered)
        return recovered

    async def retry_failed(self, limit: int = 10) -> int:
        """Re-enqueue up to ``limit`` dead-lettered operations.

        Each one becomes a fresh operation (new id, attempt 0) with the same
        user, type, payload and priority; the old record is deleted. When the
        queue is full the id goes back to the head of the dead-letter list
        and no further operations are re-enqueued.

        Returns:
            Number of operations re-enqueued
        """
        requeued = 0
        try:
            while requeued < limit:
                operation_id = await self.redis.lpop(self.keys.failed)
                if operation_id is None:
                    break
                operation = await self._load(operation_id)
                if operation is None:
                    logger.warning(
                        "failed_operation_record_missing", operation_id=operation_id
                    )
                    continue

                try:
                    new_operation_id = await self.enqueue(
                        operation.user_id,
                        operation.type,
                        operation.data,
                        operation.priority,
                    )
                except QueueCapacityError:
                    await self.redis.lpush(self.keys.failed, operation_id)
                    logger.warning(
                        "failed_operation_retry_stopped",
                        operation_id=operation_id,
                        reason="queue_full",
                        requeued=requeued,
                    )
                    break

                await self.redis.delete(self.keys.operation(operation_id))
                await self._release_user_failure(operation.user_id)
                requeued += 1
                logger.info(
                    "failed_operation_requeued",
                    operation_id=operation_id,
                    new_operation_id=new_operation_id,
                    user_id=operation.user_id,
                    operation_type=operation.type.value,
                )
        except RedisError as e:
            logger.error("failed_operation_retry_failed", error=str(e))
            raise

        return requeued

    async def clear_failed(self) -> int:
        """Delete every dead-lettered operation.

        Returns:
            Number of dead-letter entries removed
        """
        cleared = 0
        try:
            while True:
                operation_id = await self.redis.lpop(self.keys.failed)
                if operation_id is None:
                    break
                operation = await self._load(operation_id)
                if operation is not None:
                    await self._release_user_failure(operation.user_id)
                await self.redis.delete(self.keys.operation(operation_id))
                cleared += 1
        except RedisError as e:
            logger.error("failed_operations_clear_failed", error=str(e))
            raise

        logger.warning("failed_operations_cleared", count=cleared)
        return cleared

    # ------------------------------------------------------------------
    # Dequeue
    # ------------------------------------------------------------------

    async def dequeue(self) -> Optional[SyncOperation]:
        """Claim the next ready operation.

        The id is moved to the processing set and the record is marked
        PROCESSING. Ids whose record has expired are dropped.

        Returns:
            The claimed operation, or None if nothing is ready or the store
            is unreachable
        """
        try:
            while True:
                operation_id = await self._pop_next_id()
                if operation_id is None:
                    return None
                operation = await self._claim(operation_id)
                if operation is not None:
                    return operation
        except RedisError as e:
            logger.error("operation_dequeue_failed", error=str(e))
            return None

    async def _pop_next_id(self) -> Optional[str]:
        operation_id = await self._pop_ready_retry()
        if operation_id is not None:
            return operation_id

        popped = await self.redis.zpopmax(self.keys.priority, 1)
        if popped:
            return popped[0][0]

        return await self.redis.lpop(self.keys.pending)

    async def _pop_ready_retry(self) -> Optional[str]:
        now_ms = to_epoch_ms(self.now())
        for _ in range(_RETRY_CLAIM_ATTEMPTS):
            ready = await self.redis.zrangebyscore(
                self.keys.retry, "-inf", now_ms, start=0, num=1
            )
            if not ready:
                return None
            # Only the caller whose ZREM removes the id owns it.
            if await self.redis.zrem(self.keys.retry, ready[0]):
                return ready[0]
        return None

    async def _claim(self, operation_id: str) -> Optional[SyncOperation]:
        await self.redis.sadd(self.keys.processing, operation_id)
        operation = await self._load(operation_id)
        if operation is None:
            await self.redis.srem(self.keys.processing, operation_id)
            await self._drop_unreadable(operation_id)
            return None

        operation.status = SyncOperationStatus.PROCESSING
        operation.started_at = self.now()
        await self._save(operation)

        self.metrics.record_gauge(
            "sync.queue.processing", await self.redis.scard(self.keys.processing)
        )
        logger.debug(
            "operation_dequeued",
            operation_id=operation_id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            attempt=operation.attempt,
        )
        return operation

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    async def get_queue_size(self) -> int:
        """Pending plus retrying operations. Store errors propagate."""
        pending = await self.redis.llen(self.keys.pending)
        prioritized = await self.redis.zcard(self.keys.priority)
        retrying = await self.redis.zcard(self.keys.retry)
        return pending + prioritized + retrying

    async def get_stats(self) -> QueueStats:
        """Point-in-time queue statistics.

        Returns:
            QueueStats; ``available`` is False when the store could not be read
        """
        try:
            (
                pending,
                prioritized,
                retrying,
                processing,
                failed,
                counters,
            ) = await asyncio.gather(
                self.redis.llen(self.keys.pending),
                self.redis.zcard(self.keys.priority),
                self.redis.zcard(self.keys.retry),
                self.redis.scard(self.keys.processing),
                self.redis.llen(self.keys.failed),
                self.redis.hgetall(self.keys.stats),
            )
            oldest_pending_age_ms = await self._oldest_pending_age_ms()
        except RedisError as e:
            logger.error("queue_stats_failed", error=str(e))
            return QueueStats(available=False)

        samples = int(counters.get("duration_samples", 0))
        duration_total = int(counters.get("duration_total_ms", 0))
        return QueueStats(
            pending=pending + prioritized,
            processing=processing,
            retrying=retrying,
            failed=failed,
            total_operations=int(counters.get("total", 0)),
            total_successful=int(counters.get("successful", 0)),
            total_failed=int(counters.get("failed", 0)),
            total_retried=int(counters.get("retried", 0)),
            avg_duration_ms=duration_total / samples if samples else 0.0,
            oldest_pending_age_ms=oldest_pending_age_ms,
        )

    async def _oldest_pending_age_ms(self) -> int:
        """Age of the oldest operation at the head of each waiting structure.

        FIFO and priority heads are aged from the creation time embedded in
        their ids; overdue retries are aged from their due time.
        """
        now_ms = to_epoch_ms(self.now())
        since: List[int] = []

        head = await self.redis.lrange(self.keys.pending, 0, 0)
        if head:
            created_ms = operation_id_timestamp(head[0])
            if created_ms is not None:
                since.append(created_ms)

        top = await self.redis.zrange(self.keys.priority, 0, 0, desc=True)
        if top:
            created_ms = operation_id_timestamp(top[0])
            if created_ms is not None:
                since.append(created_ms)

        overdue = await self.redis.zrangebyscore(
            self.keys.retry, "-inf", now_ms, start=0, num=1, withscores=True
        )
        if overdue:
            since.append(int(overdue[0][1]))

        if not since:
            return 0
        return max(0, now_ms - min(since))

    async def get_pending_operations(self, limit: int = 10) -> List[SyncOperation]:
        """List waiting operations: prioritized ones first, then FIFO."""
        if limit <= 0:
            return []
        try:
            operation_ids = await self.redis.zrange(
                self.keys.priority, 0, limit - 1, desc=True
            )
            remaining = limit - len(operation_ids)
            if remaining > 0:
                operation_ids += await self.redis.lrange(
                    self.keys.pending, 0, remaining - 1
                )
            return await self._load_many(operation_ids)
        except RedisError as e:
            logger.error("pending_operations_lookup_failed", error=str(e))
            return []

    async def get_failed_operations(self, limit: int = 10) -> List[SyncOperation]:
        """List dead-lettered operations, oldest first."""
        if limit <= 0:
            return []
        try:
            operation_ids = await self.redis.lrange(self.keys.failed, 0, limit - 1)
            return await self._load_many(operation_ids)
        except RedisError as e:
            logger.error("failed_operations_lookup_failed", error=str(e))
            return []

    async def get_operation(self, operation_id: str) -> Optional[SyncOperation]:
        """Load one operation record; None if missing or unreadable."""
        try:
            return await self._load(operation_id)
        except RedisError as e:
            logger.error(
                "operation_lookup_failed", operation_id=operation_id, error=str(e)
            )
            return None

    async def get_user_sync_status(self, user_id: str) -> SyncStatus:
        """Per-user sync status. Unknown users report SYNCED with zero counts."""
        try:
            fields = await self.redis.hgetall(self.keys.status(user_id))
        except RedisError as e:
            logger.error("user_sync_status_lookup_failed", user_id=user_id, error=str(e))
            return SyncStatus(user_id=user_id)

        if not fields:
            return SyncStatus(user_id=user_id)

        try:
            return SyncStatus(
                user_id=user_id,
                status=UserSyncState(fields.get("status", UserSyncState.SYNCED.value)),
                last_sync_at=(
                    datetime.fromisoformat(fields["last_sync_at"])
                    if fields.get("last_sync_at")
                    else None
                ),
                last_sync_type=(
                    SyncOperationType(fields["last_sync_type"])
                    if fields.get("last_sync_type")
                    else None
                ),
                pending_operations=max(0, int(fields.get("pending_operations", 0))),
                failed_operations=max(0, int(fields.get("failed_operations", 0))),
                last_error=fields.get("last_error") or None,
            )
        except ValueError as e:
            logger.warning("user_sync_status_corrupt", user_id=user_id, error=str(e))
            return SyncStatus(user_id=user_id)

    async def health_check(self) -> Dict[str, Any]:
        """Quick queue health probe.

        Returns:
            Dictionary with ``healthy`` (bool) and ``message`` (str)
        """
        stats = await self.get_stats()
        if not stats.available:
            return {"healthy": False, "message": "Queue store unavailable"}

        problems: List[str] = []
        if stats.backlog > self.config.queue_size_threshold:
            problems.append(
                f"Queue backlog {stats.backlog} exceeds "
                f"{self.config.queue_size_threshold}"
            )
        if stats.oldest_pending_age_ms > self.config.operation_age_threshold_ms:
            problems.append(
                f"Oldest pending operation is {stats.oldest_pending_age_ms}ms old"
            )

        if problems:
            return {"healthy": False, "message": "; ".join(problems)}
        return {"healthy": True, "message": "Queue is healthy"}

    # ------------------------------------------------------------------
    # Records and per-user status
    # ------------------------------------------------------------------

    async def _save(
        self, operation: SyncOperation, ttl_seconds: Optional[int] = None
    ) -> None:
        await self.redis.set(
            self.keys.operation(operation.id),
            encode_operation(operation),
            ex=ttl_seconds or self.config.operation_ttl_seconds,
        )

    async def _load(self, operation_id: str) -> Optional[SyncOperation]:
        raw = await self.redis.get(self.keys.operation(operation_id))
        if raw is None:
            return None
        try:
            return decode_operation(raw)
        except SerializationError as e:
            logger.error(
                "operation_record_corrupt", operation_id=operation_id, error=str(e)
            )
            return None

    async def _drop_unreadable(self, operation_id: str) -> None:
        """Forget a dequeued id whose record expired or cannot be decoded.

        The owning user's pending count is released when the record still
        names the user. An expired record leaves nothing to attribute.
        """
        key = self.keys.operation(operation_id)
        raw = await self.redis.get(key)
        if raw is None:
            logger.warning("operation_record_missing", operation_id=operation_id)
            return

        await self.redis.delete(key)
        user_id = read_user_id(raw)
        if user_id is not None:
            status_key = self.keys.status(user_id)
            await self._decrement_pending(status_key)
            await self.redis.expire(status_key, self.config.status_ttl_seconds)
        logger.warning(
            "operation_record_dropped", operation_id=operation_id, user_id=user_id
        )

    async def _delete_matching(self, pattern: str) -> int:
        deleted = 0
        batch: List[str] = []
        async for key in self.redis.scan_iter(match=pattern, count=_SCAN_BATCH):
            batch.append(key)
            if len(batch) >= _SCAN_BATCH:
                deleted += await self.redis.delete(*batch)
                batch = []
        if batch:
            deleted += await self.redis.delete(*batch)
        return deleted

    async def _load_many(self, operation_ids: List[str]) -> List[SyncOperation]:
        operations = []
        for operation_id in operation_ids:
            operation = await self._load(operation_id)
            if operation is not None:
                operations.append(operation)
        return operations

    async def _schedule_retry(self, operation: SyncOperation) -> None:
        delay_ms = calculate_retry_delay(operation.attempt, self.config, self._rng)
        operation.scheduled_for = self.now() + timedelta(milliseconds=delay_ms)
        operation.status = SyncOperationStatus.RETRYING

        await self._save(operation)
        await self.redis.zadd(
            self.keys.retry, {operation.id: to_epoch_ms(operation.scheduled_for)}
        )
        await self.redis.hincrby(self.keys.stats, "retried", 1)

        status_key = self.keys.status(operation.user_id)
        await self.redis.hset(
            status_key,
            mapping={
                "status": UserSyncState.RETRYING.value,
                "last_error": operation.last_error or "",
            },
        )
        await self.redis.expire(status_key, self.config.status_ttl_seconds)

        self.metrics.record_counter(
            "sync.operations.retry", operation_type=operation.type.value
        )
        logger.warning(
            "operation_retry_scheduled",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            attempt=operation.attempt,
            max_attempts=operation.max_attempts,
            delay_ms=delay_ms,
            scheduled_for=operation.scheduled_for.isoformat(),
            error=operation.last_error,
        )

    async def _dead_letter(self, operation: SyncOperation, recoverable: bool) -> None:
        operation.status = SyncOperationStatus.FAILED

        await self._save(operation, ttl_seconds=self.config.dead_letter_ttl_seconds)
        await self.redis.rpush(self.keys.failed, operation.id)
        await self.redis.ltrim(
            self.keys.failed, -self.config.dead_letter_max_size, -1
        )
        await self.redis.hincrby(self.keys.stats, "failed", 1)

        status_key = self.keys.status(operation.user_id)
        await self._decrement_pending(status_key)
        await self.redis.hincrby(status_key, "failed_operations", 1)
        await self.redis.hset(
            status_key,
            mapping={
                "status": UserSyncState.FAILED.value,
                "last_error": operation.last_error or "",
            },
        )
        await self.redis.expire(status_key, self.config.status_ttl_seconds)

        self.metrics.record_counter(
            "sync.operations.failed", operation_type=operation.type.value
        )
        logger.error(
            "operation_failed_permanently",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            attempt=operation.attempt,
            max_attempts=operation.max_attempts,
            recoverable=recoverable,
            error=operation.last_error,
        )

    async def _mark_user_pending(self, operation: SyncOperation) -> None:
        status_key = self.keys.status(operation.user_id)
        await self.redis.hset(status_key, "status", UserSyncState.PENDING.value)
        await self.redis.hincrby(status_key, "pending_operations", 1)
        await self.redis.expire(status_key, self.config.status_ttl_seconds)
        self.metrics.record_counter(f"sync.user.{operation.type.value.lower()}.queued")

    async def _mark_user_synced(self, operation: SyncOperation) -> None:
        status_key = self.keys.status(operation.user_id)
        await self._decrement_pending(status_key)
        await self.redis.hset(
            status_key,
            mapping={
                "status": UserSyncState.SYNCED.value,
                "last_sync_at": self.now().isoformat(),
                "last_sync_type": operation.type.value,
            },
        )
        await self.redis.hdel(status_key, "last_error")
        await self.redis.expire(status_key, self.config.status_ttl_seconds)

    async def _release_user_failure(self, user_id: str) -> None:
        status_key = self.keys.status(user_id)
        remaining = await self.redis.hincrby(status_key, "failed_operations", -1)
        if remaining < 0:
            await self.redis.hset(status_key, "failed_operations", 0)
        await self.redis.expire(status_key, self.config.status_ttl_seconds)

    async def _decrement_pending(self, status_key: str) -> int:
        remaining = await self.redis.hincrby(status_key, "pending_operations", -1)
        if remaining < 0:
            await self.redis.hset(status_key, "pending_operations", 0)
            return 0
        return remaining
