"""
QuestSheet Players - Schemas.

Pydantic models for registration and mission progress. Field names follow
the JSON the game client sends (camelCase where it does).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from questsheet.core.rows import normalize_text


class _TextFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _to_text(cls, value: Any) -> str:
        return normalize_text(value)


class RegisterRequest(_TextFields):
    sid: str = ""
    name: str = ""
    email: str = ""


class RegisterResponse(BaseModel):
    ok: bool = True
    existed: bool
    mission1Passed: bool


class MissionProgressRequest(_TextFields):
    sid: str = ""
    name: str = ""
    mission: str = ""
    status: str = ""


class MissionProgressResponse(BaseModel):
    ok: bool = True
    updated: bool
