"""Store key layout for the reconciliation queue.

Key                              Type    Content
{prefix}queue:pending            list    FIFO operation ids (priority <= 0)
{prefix}queue:priority           zset    prioritized ids, see priority_score()
{prefix}queue:retry              zset    retry-scheduled ids scored by due time (ms)
{prefix}queue:processing         set     ids claimed by a worker
{prefix}queue:failed             list    dead-lettered ids, oldest first
{prefix}stats                    hash    lifetime counters
{prefix}operation:{id}           string  serialized operation record (with TTL)
{prefix}status:{user_id}         hash    per-user sync status (with TTL)
"""

from dataclasses import dataclass

# Scores in the priority set are priority * PRIORITY_SCALE - created_at_ms, so
# ZPOPMAX returns the highest priority first and, within one priority, the
# oldest operation first. Creation times stay below 10**13 ms until 2286.
PRIORITY_SCALE = 10**13
MAX_PRIORITY = 100


def priority_score(priority: int, created_at_ms: int) -> int:
    return priority * PRIORITY_SCALE - created_at_ms


@dataclass(frozen=True)
class QueueKeys:
    """Key names derived from a prefix."""

    prefix: str = "sync:"

    @property
    def pending(self) -> str:
        return f"{self.prefix}queue:pending"

    @property
    def priority(self) -> str:
        return f"{self.prefix}queue:priority"

    @property
    def retry(self) -> str:
        return f"{self.prefix}queue:retry"

    @property
    def processing(self) -> str:
        return f"{self.prefix}queue:processing"

    @property
    def failed(self) -> str:
        return f"{self.prefix}queue:failed"

    @property
    def stats(self) -> str:
        return f"{self.prefix}stats"

    def operation(self, operation_id: str) -> str:
        return f"{self.prefix}operation:{operation_id}"

    def status(self, user_id: str) -> str:
        return f"{self.prefix}status:{user_id}"

    def queue_keys(self) -> tuple[str, ...]:
        """Every key holding queue structure (not records or user status)."""
        return (
            self.pending,
            self.priority,
            self.retry,
            self.processing,
            self.failed,
            self.stats,
        )
