"""Shared fixtures: seeded in-memory workbooks and a scriptable flaky store."""

from __future__ import annotations

import asyncio

import pytest

from questsheet.core.store import InMemoryTabularStore, TransientStoreError
from questsheet.modules.players.repository import PLAYER_HEADERS
from questsheet.observability.metrics import MetricsStore

TASK_TAB = "資料庫"
LOG_TAB = "通關紀錄"
PLAYER_TAB = "玩家資料"

TASK_RANGE = f"{TASK_TAB}!A:Z"
LOG_RANGE = f"{LOG_TAB}!A:E"

TASK_ROWS = [
    ["target", "title", "hint"],
    ["01文", "Find the library", "Look up"],
    ["03傳", "Relay station", "Past the gate"],
    [" 12織 ", "Weaving room", ""],
]


class FlakyStore(InMemoryTabularStore):
    """
    In-memory store that records every call and can be told to fail.

    `fail[op] = n` makes the next n calls of `op` raise TransientStoreError;
    `always_fail` makes every call fail; `gates[op]` blocks `op` until set.
    """

    def __init__(self, tabs=None):
        super().__init__(tabs)
        self.calls: list[tuple[str, str]] = []
        self.appended: list[list[list[str]]] = []
        self.fail: dict[str, int] = {}
        self.always_fail: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    async def _enter(self, op: str, range_: str) -> None:
        self.calls.append((op, range_))
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.always_fail:
            raise TransientStoreError(op, range_, "HTTP 503")
        if self.fail.get(op, 0) > 0:
            self.fail[op] -= 1
            raise TransientStoreError(op, range_, "HTTP 429")

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    @property
    def writes(self) -> int:
        return self.count("append_rows") + self.count("update_range")

    async def read_range(self, range_):
        await self._enter("read_range", range_)
        return await super().read_range(range_)

    async def append_rows(self, range_, rows):
        await self._enter("append_rows", range_)
        self.appended.append([list(row) for row in rows])
        await super().append_rows(range_, rows)

    async def update_range(self, range_, values):
        await self._enter("update_range", range_)
        await super().update_range(range_, values)


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and yields once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def metrics():
    return MetricsStore()


@pytest.fixture
def workbook():
    """Task + log + player tabs, header rows only for log and players."""
    return FlakyStore(
        {
            TASK_TAB: TASK_ROWS,
            LOG_TAB: [["time", "userId", "target", "status", "key"]],
            PLAYER_TAB: [list(PLAYER_HEADERS)],
        }
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()
