"""
QuestSheet Tasks - Router.

Task text lookup by target code. Served from the SWR cache, never waits on
the store beyond the cold-start grace period.
"""

from fastapi import APIRouter, Depends

from questsheet.deps import get_task_cache
from questsheet.exceptions import NotFoundException
from questsheet.modules.tasks.cache import TaskCache

router = APIRouter(prefix="/api", tags=["tasks"])


@router.get("/task", response_model=dict[str, str])
async def get_task(
    target: str = "",
    cache: TaskCache = Depends(get_task_cache),
):
    """Return the task row for `target` as a flat column -> value object."""
    record = await cache.get_task(target)
    if record is None:
        raise NotFoundException("task", target)
    return record
