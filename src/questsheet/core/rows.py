"""
QuestSheet Core - Row Utilities.

Helpers shared by every component that talks to the tabular store:
text normalization, A1 range handling, row -> record mapping and the
timestamp format written into the sheets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

_CELL_RE = re.compile(r"^([A-Za-z]*)(\d*)$")


def normalize_text(value: Any) -> str:
    """Coerce any cell or request value to a trimmed string (None -> "")."""
    if value is None:
        return ""
    return str(value).strip()


def column_to_letter(index: int) -> str:
    """1-based column index -> A1 column letters (1 -> A, 27 -> AA)."""
    letters = ""
    i = int(index)
    while i > 0:
        rem = (i - 1) % 26
        letters = chr(65 + rem) + letters
        i = (i - 1) // 26
    return letters


def letter_to_column(letters: str) -> int:
    """A1 column letters -> 1-based column index."""
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - 64)
    return index


@dataclass(frozen=True)
class A1Range:
    """Parsed ``Tab!A1:B2`` range. Rows/columns are 1-based; None means open-ended."""

    sheet: str
    start_column: int
    start_row: int | None
    end_column: int | None
    end_row: int | None


def parse_a1_range(range_: str) -> A1Range:
    sheet, sep, cells = range_.rpartition("!")
    if not sep:
        raise ValueError(f"Range must include a sheet name: {range_!r}")
    sheet = sheet.strip("'")

    start, _, end = cells.partition(":")
    start_match = _CELL_RE.match(start.strip())
    end_match = _CELL_RE.match((end or start).strip())
    if not start_match or not end_match:
        raise ValueError(f"Invalid A1 range: {range_!r}")

    start_col, start_row = start_match.groups()
    end_col, end_row = end_match.groups()
    return A1Range(
        sheet=sheet,
        start_column=letter_to_column(start_col) if start_col else 1,
        start_row=int(start_row) if start_row else None,
        end_column=letter_to_column(end_col) if end_col else None,
        end_row=int(end_row) if end_row else None,
    )


def cell_range(sheet: str, column: int, row: int) -> str:
    """Single-cell range in ``Tab!D7:D7`` form."""
    letter = column_to_letter(column)
    return f"{sheet}!{letter}{row}:{letter}{row}"


def row_to_record(headers: Sequence[str], row: Sequence[str]) -> dict[str, str]:
    """Map a row onto its header names; blank headers become COL<n>."""
    record: dict[str, str] = {}
    for i, header in enumerate(headers):
        key = header or f"COL{i + 1}"
        record[key] = row[i] if i < len(row) and row[i] is not None else ""
    return record


def cell(row: Sequence[str], index: int) -> str:
    """Normalized value of a 0-based cell, "" when the row is short."""
    return normalize_text(row[index]) if index < len(row) else ""


def sheet_timestamp(moment: datetime | None = None) -> str:
    """UTC timestamp as ``YYYY-MM-DD HH:MM:SS.mmm``."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


__all__ = [
    "A1Range",
    "cell",
    "cell_range",
    "column_to_letter",
    "letter_to_column",
    "normalize_text",
    "parse_a1_range",
    "row_to_record",
    "sheet_timestamp",
]
