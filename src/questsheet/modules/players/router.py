"""
QuestSheet Players - Router.

Registration and mission progress. Both run a synchronous
read-reconcile-write round-trip against the player tab.
"""

from fastapi import APIRouter, Depends

from questsheet.deps import get_player_registry
from questsheet.modules.players.schemas import (
    MissionProgressRequest,
    MissionProgressResponse,
    RegisterRequest,
    RegisterResponse,
)
from questsheet.modules.players.service import PlayerRegistry

router = APIRouter(prefix="/api", tags=["players"])


@router.post("/register", response_model=RegisterResponse)
async def register(
    payload: RegisterRequest | None = None,
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """
    Register by student id + name.

    Returns whether the player already existed and whether mission 1 is passed.
    409 REGISTER_MISMATCH when the id or the name belongs to another row.
    """
    payload = payload or RegisterRequest()
    result = await registry.register(payload.sid, payload.name, payload.email)
    return RegisterResponse(existed=result.existed, mission1Passed=result.mission1_passed)


@router.post("/mission-progress", response_model=MissionProgressResponse)
async def mission_progress(
    payload: MissionProgressRequest | None = None,
    registry: PlayerRegistry = Depends(get_player_registry),
):
    """Record a mission status (default mission1 = pass) for a registered player."""
    payload = payload or MissionProgressRequest()
    result = await registry.record_mission_progress(
        payload.sid,
        payload.name,
        mission=payload.mission,
        status=payload.status,
    )
    return MissionProgressResponse(updated=result.updated)
