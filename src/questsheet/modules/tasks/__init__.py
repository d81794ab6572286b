"""QuestSheet Tasks Module - cached task text lookup."""

from questsheet.modules.tasks.cache import TaskCache, TaskSnapshot
from questsheet.modules.tasks.router import router

__all__ = ["router", "TaskCache", "TaskSnapshot"]
