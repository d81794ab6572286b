"""
QuestSheet Players - Service.

Registration and mission progress reconciled against a fresh read of the
player tab on every call. There is no player cache: the tab has no
transactions and may be edited by hand at any time, so each mutating call
must see the latest committed state.

Two concurrent calls for the same sid can still race between read and write;
serializing writes per sid would close that gap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from questsheet.core.rows import cell, normalize_text, sheet_timestamp
from questsheet.core.store import StoreError
from questsheet.exceptions import (
    NameMismatchException,
    NotRegisteredException,
    RegisterMismatchException,
    StoreOperationException,
    UnsupportedMissionException,
    ValidationException,
)
from questsheet.modules.players.repository import (
    EMAIL_COLUMN,
    NAME_COLUMN,
    PlayerRepository,
    sheet_row_number,
)

logger = logging.getLogger(__name__)

# Mission identifier -> 1-based column on the player tab.
MISSION_COLUMNS: dict[str, int] = {
    "mission1": 5,  # E
}

DEFAULT_MISSION = "mission1"
DEFAULT_STATUS = "pass"
PASS_STATUS = "pass"


@dataclass(frozen=True)
class RegistrationResult:
    existed: bool
    mission1_passed: bool


@dataclass(frozen=True)
class ProgressResult:
    updated: bool


class PlayerRegistry:
    """Player registration and per-mission status, backed by the player tab."""

    def __init__(
        self,
        repository: PlayerRepository,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._repository = repository
        self._now = now

    async def register(self, sid: str, name: str, email: str = "") -> RegistrationResult:
        """
        Register a player or recognise a returning one.

        - Exact (sid, name) match: returning player; a supplied, different
          email overwrites the stored one (an empty email never clears it).
        - sid or name taken by another row: REGISTER_MISMATCH, nothing written.
        - Neither seen before: append a new row.
        """
        sid, name, email = normalize_text(sid), normalize_text(name), normalize_text(email)
        _require(sid=sid, name=name)

        try:
            players = await self._repository.load()

            position = players.find_pair(sid, name)
            if position is not None:
                row = players.rows[position]
                if email and cell(row, EMAIL_COLUMN - 1) != email:
                    await self._repository.update_email(position, email)
                    logger.info(f"Player {sid} email updated on row {sheet_row_number(position)}")
                return RegistrationResult(
                    existed=True,
                    mission1_passed=_is_pass(cell(row, MISSION_COLUMNS["mission1"] - 1)),
                )

            sid_taken, name_taken = players.has_sid(sid), players.has_name(name)
            if sid_taken or name_taken:
                logger.warning(
                    f"Registration mismatch sid={sid} name={name} "
                    f"(sid_taken={sid_taken}, name_taken={name_taken})"
                )
                raise RegisterMismatchException(sid_taken=sid_taken, name_taken=name_taken)

            await self._repository.append_player(
                sheet_timestamp(self._now()), sid, name, email, with_header=not players.has_header
            )
            logger.info(f"Player {sid} registered")
            return RegistrationResult(existed=False, mission1_passed=False)

        except StoreError as exc:
            logger.error(f"register failed sid={sid} name={name}: {exc}")
            raise StoreOperationException(
                "REGISTER_FAILED",
                "Registration failed, please try again later",
                operation=exc.operation,
            ) from exc

    async def record_mission_progress(
        self,
        sid: str,
        name: str,
        mission: str = "",
        status: str = "",
    ) -> ProgressResult:
        """
        Write `status` into the mission's column on the sid's row.

        Idempotent: a cell already holding `status` (case-insensitive) is left
        untouched and reported as not updated.
        """
        sid, name = normalize_text(sid), normalize_text(name)
        mission = normalize_text(mission) or DEFAULT_MISSION
        status = normalize_text(status) or DEFAULT_STATUS
        _require(sid=sid, name=name)

        column = MISSION_COLUMNS.get(mission)
        if column is None:
            raise UnsupportedMissionException(mission, sorted(MISSION_COLUMNS))

        try:
            players = await self._repository.load()

            position = players.find_sid(sid)
            if position is None:
                raise NotRegisteredException(sid)

            row = players.rows[position]
            stored_name = cell(row, NAME_COLUMN - 1)
            if stored_name and stored_name != name:
                logger.warning(f"Mission progress name mismatch sid={sid} on row {sheet_row_number(position)}")
                raise NameMismatchException(sid)

            if cell(row, column - 1).lower() == status.lower():
                return ProgressResult(updated=False)

            await self._repository.update_cell(position, column, status)
            logger.info(f"Player {sid} {mission} -> {status}")
            return ProgressResult(updated=True)

        except StoreError as exc:
            logger.error(f"mission-progress failed sid={sid} mission={mission}: {exc}")
            raise StoreOperationException(
                "MISSION_SAVE_FAILED",
                "Progress could not be saved",
                operation=exc.operation,
            ) from exc


def _require(**fields: str) -> None:
    missing = [key for key, value in fields.items() if not value]
    if missing:
        raise ValidationException("Student id and name are required", fields=missing)


def _is_pass(value: str) -> bool:
    return normalize_text(value).lower() == PASS_STATUS


__all__ = [
    "DEFAULT_MISSION",
    "MISSION_COLUMNS",
    "PlayerRegistry",
    "ProgressResult",
    "RegistrationResult",
]
