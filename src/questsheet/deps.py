"""
QuestSheet - Dependency Injection.

FastAPI dependencies handing out the process-scoped state objects created by
the application factory (task cache, log queue, player registry).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from questsheet.modules.logs.queue import CompletionLogQueue
    from questsheet.modules.players.service import PlayerRegistry
    from questsheet.modules.tasks.cache import TaskCache
    from questsheet.observability.metrics import MetricsStore


# =============================================================================
# Process-scoped state
# =============================================================================


def get_task_cache(request: Request) -> TaskCache:
    """Get the shared task cache."""
    return request.app.state.task_cache


def get_log_queue(request: Request) -> CompletionLogQueue:
    """Get the shared completion log queue."""
    return request.app.state.log_queue


def get_player_registry(request: Request) -> PlayerRegistry:
    """Get the player registry service."""
    return request.app.state.player_registry


def get_metrics(request: Request) -> MetricsStore:
    """Get the metrics store the app was built with."""
    return request.app.state.metrics

