"""
QuestSheet Logs - Schemas.

Pydantic models for the completion log endpoint.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from questsheet.core.rows import normalize_text


class LogRequest(BaseModel):
    """Completion event as sent by the client. Presence is checked by the router."""

    model_config = ConfigDict(extra="ignore")

    userId: str = ""
    target: str = ""
    status: str = "OK"
    key: str = ""

    @field_validator("userId", "target", "status", "key", mode="before")
    @classmethod
    def _to_text(cls, value: Any) -> str:
        return normalize_text(value)


class LogAck(BaseModel):
    """Entry accepted into the write queue, not yet persisted."""

    ok: bool = True
