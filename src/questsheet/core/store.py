"""
QuestSheet Core - Tabular Store.

The capability every component is written against: bulk range read, bulk
append and range update on a spreadsheet-like resource addressed with A1
ranges. No transactions, no indexes, and humans may edit it concurrently.

Implementations:
- InMemoryTabularStore: process-local tabs (dev backend, tests)
- GoogleSheetsStore (questsheet.core.sheets): Sheets API v4
- InstrumentedStore: timeout + metrics decorator around either
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from threading import RLock

import structlog

from questsheet.core.rows import parse_a1_range
from questsheet.observability.metrics import MetricsStore

log = structlog.get_logger(__name__)


class StoreError(Exception):
    """A store call failed."""

    code = "STORE_ERROR"

    def __init__(self, operation: str, range_: str, reason: str):
        self.operation = operation
        self.range = range_
        self.reason = reason
        super().__init__(f"{operation} {range_} failed: {reason}")


class TransientStoreError(StoreError):
    """Network, rate-limit or timeout failure. Safe to retry."""

    code = "STORE_TRANSIENT"


class TabularStore(ABC):
    """Interface for the backing tabular store."""

    @abstractmethod
    async def read_range(self, range_: str) -> list[list[str]]:
        """Return the rows of `range_`; trailing empty cells may be omitted."""

    @abstractmethod
    async def append_rows(self, range_: str, rows: list[list[str]]) -> None:
        """Append `rows` after the last data row of the table at `range_`."""

    @abstractmethod
    async def update_range(self, range_: str, values: list[list[str]]) -> None:
        """Overwrite the rectangle addressed by `range_` with `values`."""

    async def aclose(self) -> None:
        """Release network resources, if any."""


class InMemoryTabularStore(TabularStore):
    """Process-local store keyed by tab name. Understands the same A1 ranges."""

    def __init__(self, tabs: dict[str, list[list[str]]] | None = None):
        self._lock = RLock()
        self._tabs: dict[str, list[list[str]]] = {
            name: [list(row) for row in rows] for name, rows in (tabs or {}).items()
        }

    def tab(self, name: str) -> list[list[str]]:
        """Copy of a tab's raw rows (header included)."""
        with self._lock:
            return [list(row) for row in self._tabs.get(name, [])]

    def set_tab(self, name: str, rows: list[list[str]]) -> None:
        with self._lock:
            self._tabs[name] = [list(row) for row in rows]

    async def read_range(self, range_: str) -> list[list[str]]:
        a1 = parse_a1_range(range_)
        with self._lock:
            rows = self._tabs.get(a1.sheet, [])
            first = (a1.start_row or 1) - 1
            last = a1.end_row if a1.end_row is not None else len(rows)
            result = []
            for row in rows[first:last]:
                cells = row[a1.start_column - 1 : a1.end_column]
                while cells and cells[-1] == "":
                    cells = cells[:-1]
                result.append(list(cells))
            while result and not result[-1]:
                result.pop()
            return result

    async def append_rows(self, range_: str, rows: list[list[str]]) -> None:
        a1 = parse_a1_range(range_)
        padding = [""] * (a1.start_column - 1)
        with self._lock:
            tab = self._tabs.setdefault(a1.sheet, [])
            tab.extend(padding + [str(value) for value in row] for row in rows)

    async def update_range(self, range_: str, values: list[list[str]]) -> None:
        a1 = parse_a1_range(range_)
        if a1.start_row is None:
            raise StoreError("update_range", range_, "update requires an explicit start row")
        with self._lock:
            tab = self._tabs.setdefault(a1.sheet, [])
            for r, row_values in enumerate(values):
                row_index = a1.start_row - 1 + r
                while len(tab) <= row_index:
                    tab.append([])
                row = tab[row_index]
                for c, value in enumerate(row_values):
                    col_index = a1.start_column - 1 + c
                    while len(row) <= col_index:
                        row.append("")
                    row[col_index] = str(value)


class InstrumentedStore(TabularStore):
    """
    Bounds every call with a timeout and records latency/errors per operation.

    A timeout surfaces as TransientStoreError so callers treat it like any
    other retryable failure.
    """

    def __init__(self, inner: TabularStore, timeout_seconds: float, metrics: MetricsStore):
        self._inner = inner
        self._timeout = timeout_seconds
        self._metrics = metrics

    async def _call(self, operation: str, range_: str, coro):
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            self._metrics.record_operation_error(operation, "TIMEOUT")
            log.warning("store_call_timeout", operation=operation, range=range_, timeout_s=self._timeout)
            raise TransientStoreError(operation, range_, f"timed out after {self._timeout}s") from exc
        except StoreError as exc:
            self._metrics.record_operation_error(operation, exc.code)
            log.warning("store_call_failed", operation=operation, range=range_, reason=exc.reason)
            raise
        self._metrics.record_operation_latency(operation, (time.perf_counter() - started) * 1000)
        return result

    async def read_range(self, range_: str) -> list[list[str]]:
        return await self._call("read_range", range_, self._inner.read_range(range_))

    async def append_rows(self, range_: str, rows: list[list[str]]) -> None:
        await self._call("append_rows", range_, self._inner.append_rows(range_, rows))

    async def update_range(self, range_: str, values: list[list[str]]) -> None:
        await self._call("update_range", range_, self._inner.update_range(range_, values))

    async def aclose(self) -> None:
        await self._inner.aclose()


__all__ = [
    "InMemoryTabularStore",
    "InstrumentedStore",
    "StoreError",
    "TabularStore",
    "TransientStoreError",
]
