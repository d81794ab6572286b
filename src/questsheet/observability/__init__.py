"""
QuestSheet Observability Module.

Provides in-process metrics collection for store calls, errors, and queue/cache counters.
"""

from questsheet.observability.metrics import MetricsStore, get_metrics_store

__all__ = ["MetricsStore", "get_metrics_store"]
