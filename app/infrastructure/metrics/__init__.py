"""Metrics collection for the reconciliation engine."""

from infrastructure.metrics.collector import InMemoryMetricsCollector, MetricsCollector

__all__ = ["MetricsCollector", "InMemoryMetricsCollector"]
