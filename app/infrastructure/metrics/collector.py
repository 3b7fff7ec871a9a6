"""Metrics collection.

The reconciliation engine emits counters, timers and gauges through the
MetricsCollector protocol so deployments can plug in their own exporter.
InMemoryMetricsCollector keeps everything in process and is what the
service uses when no exporter is configured.
"""

import threading
from collections import defaultdict
from typing import Any, Dict, Protocol, Tuple

from infrastructure.logging import get_module_logger

logger = get_module_logger()

TagKey = Tuple[Tuple[str, str], ...]


def _tag_key(tags: Dict[str, Any]) -> TagKey:
    return tuple(sorted((k, str(v)) for k, v in tags.items()))


class MetricsCollector(Protocol):
    """Sink for engine metrics.

    Methods:
        record_counter: Add to a monotonically increasing counter
        record_timer: Record a duration sample in milliseconds
        record_gauge: Set a point-in-time value
    """

    def record_counter(self, name: str, value: int = 1, **tags: Any) -> None:
        ...

    def record_timer(self, name: str, duration_ms: float, **tags: Any) -> None:
        ...

    def record_gauge(self, name: str, value: float, **tags: Any) -> None:
        ...


class InMemoryMetricsCollector:
    """Thread-safe in-process MetricsCollector.

    Counters accumulate, timers keep count/total/min/max per series, gauges
    keep the last value. A series is identified by name plus tags.
    """

    def __init__(self) -> None:
        self._counters: Dict[Tuple[str, TagKey], int] = defaultdict(int)
        self._timers: Dict[Tuple[str, TagKey], Dict[str, float]] = {}
        self._gauges: Dict[Tuple[str, TagKey], float] = {}
        self._lock = threading.Lock()

    def record_counter(self, name: str, value: int = 1, **tags: Any) -> None:
        with self._lock:
            self._counters[(name, _tag_key(tags))] += value

    def record_timer(self, name: str, duration_ms: float, **tags: Any) -> None:
        with self._lock:
            key = (name, _tag_key(tags))
            series = self._timers.get(key)
            if series is None:
                self._timers[key] = {
                    "count": 1,
                    "total_ms": duration_ms,
                    "min_ms": duration_ms,
                    "max_ms": duration_ms,
                }
                return
            series["count"] += 1
            series["total_ms"] += duration_ms
            series["min_ms"] = min(series["min_ms"], duration_ms)
            series["max_ms"] = max(series["max_ms"], duration_ms)

    def record_gauge(self, name: str, value: float, **tags: Any) -> None:
        with self._lock:
            self._gauges[(name, _tag_key(tags))] = value

    def get_counter(self, name: str, **tags: Any) -> int:
        with self._lock:
            return self._counters.get((name, _tag_key(tags)), 0)

    def get_gauge(self, name: str, **tags: Any) -> float | None:
        with self._lock:
            return self._gauges.get((name, _tag_key(tags)))

    def get_timer(self, name: str, **tags: Any) -> Dict[str, float] | None:
        with self._lock:
            series = self._timers.get((name, _tag_key(tags)))
            return dict(series) if series else None

    def snapshot(self) -> dict:
        """Return all series as plain dicts, keyed by metric name.

        Returns:
            Dictionary with "counters", "timers" and "gauges" sections. Tagged
            series are rendered as "name{k=v,...}".
        """

        def _render(key: Tuple[str, TagKey]) -> str:
            name, tags = key
            if not tags:
                return name
            return name + "{" + ",".join(f"{k}={v}" for k, v in tags) + "}"

        with self._lock:
            return {
                "counters": {_render(k): v for k, v in self._counters.items()},
                "timers": {_render(k): dict(v) for k, v in self._timers.items()},
                "gauges": {_render(k): v for k, v in self._gauges.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timers.clear()
            self._gauges.clear()
        logger.debug("metrics_reset")
