"""
QuestSheet Players - Repository.

Row-level access to the player tab. Columns (1-based):
A firstSeenAt | B sid | C name | D email | E mission1Status | ...

Data row i (0-based, header excluded) lives on sheet row i + 2.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from questsheet.core.rows import cell, cell_range, column_to_letter
from questsheet.core.store import TabularStore

SID_COLUMN = 2
NAME_COLUMN = 3
EMAIL_COLUMN = 4

HEADER_ROWS = 1

PLAYER_HEADERS = ["firstSeenAt", "sid", "name", "email", "mission1Status"]


def sheet_row_number(position: int) -> int:
    """0-based data row position -> 1-based sheet row number."""
    return position + HEADER_ROWS + 1


@dataclass
class PlayerIndex:
    """
    Lookup tables built from one read of the player tab.

    Rebuilt on every request; first occurrence wins, like a top-down scan.
    """

    rows: list[list[str]]
    has_header: bool = True
    by_sid: dict[str, int] = field(default_factory=dict)
    by_name: dict[str, int] = field(default_factory=dict)
    by_pair: dict[tuple[str, str], int] = field(default_factory=dict)

    @classmethod
    def build(cls, rows: list[list[str]], has_header: bool = True) -> PlayerIndex:
        index = cls(rows=rows, has_header=has_header)
        for position, row in enumerate(rows):
            sid = cell(row, SID_COLUMN - 1)
            name = cell(row, NAME_COLUMN - 1)
            index.by_sid.setdefault(sid, position)
            index.by_name.setdefault(name, position)
            index.by_pair.setdefault((sid, name), position)
        return index

    def find_pair(self, sid: str, name: str) -> int | None:
        return self.by_pair.get((sid, name))

    def find_sid(self, sid: str) -> int | None:
        return self.by_sid.get(sid)

    def has_sid(self, sid: str) -> bool:
        return sid in self.by_sid

    def has_name(self, name: str) -> bool:
        return name in self.by_name


class PlayerRepository:
    """Reads and writes the player tab through a TabularStore."""

    def __init__(self, store: TabularStore, tab: str, last_column: int = 5):
        self._store = store
        self._tab = tab
        self._range = f"{tab}!A:{column_to_letter(max(last_column, EMAIL_COLUMN + 1))}"

    @property
    def range(self) -> str:
        return self._range

    async def load(self) -> PlayerIndex:
        """Fresh read of every player row (header skipped)."""
        values = await self._store.read_range(self._range)
        return PlayerIndex.build(values[HEADER_ROWS:], has_header=bool(values))

    async def update_cell(self, position: int, column: int, value: str) -> None:
        await self._store.update_range(
            cell_range(self._tab, column, sheet_row_number(position)),
            [[value]],
        )

    async def update_email(self, position: int, email: str) -> None:
        await self.update_cell(position, EMAIL_COLUMN, email)

    async def append_player(
        self, first_seen_at: str, sid: str, name: str, email: str, with_header: bool = False
    ) -> None:
        """Append a new player row; `with_header` also writes the header into an empty tab."""
        rows = [[first_seen_at, sid, name, email, ""]]
        if with_header:
            rows.insert(0, list(PLAYER_HEADERS))
        await self._store.append_rows(self._range, rows)
