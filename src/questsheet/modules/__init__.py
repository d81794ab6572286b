"""QuestSheet Modules - All application modules."""

from questsheet.modules.logs import router as logs_router
from questsheet.modules.players import router as players_router
from questsheet.modules.tasks import router as tasks_router

__all__ = [
    "logs_router",
    "players_router",
    "tasks_router",
]
