"""
QuestSheet Logs - Router.

Completion logging. The request only enqueues; persistence happens in the
background flusher.
"""

from fastapi import APIRouter, Depends

from questsheet.deps import get_log_queue
from questsheet.exceptions import ValidationException
from questsheet.modules.logs.queue import CompletionLogQueue, LogEntry
from questsheet.modules.logs.schemas import LogAck, LogRequest

router = APIRouter(prefix="/api", tags=["logs"])


@router.post("/log", response_model=LogAck)
async def log_completion(
    payload: LogRequest | None = None,
    queue: CompletionLogQueue = Depends(get_log_queue),
):
    """Queue a completion event and acknowledge immediately."""
    payload = payload or LogRequest()
    missing = [name for name in ("userId", "target") if not getattr(payload, name)]
    if missing:
        raise ValidationException("userId and target are required", fields=missing)

    queue.enqueue(
        LogEntry(
            user_id=payload.userId,
            target=payload.target,
            status=payload.status,
            key=payload.key,
        )
    )
    return LogAck()
