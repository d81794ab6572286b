"""
QuestSheet Tasks - Stale-While-Revalidate Cache.

Serves task records from one in-memory snapshot of the task dataset and
refreshes it in the background.

Read path
---------
1. Look the target up in the current snapshot (no I/O).
2. Fresh hit (younger than TTL) -> return it.
3. Otherwise trigger a refresh (single-flight) without awaiting it.
4. Stale hit -> return it immediately.
5. Miss -> wait up to the grace period for the in-flight refresh, then look
   up once more.

A failed refresh keeps the previous snapshot; stale data beats no data.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from typing import Callable

import structlog

from questsheet.core.rows import normalize_text, row_to_record
from questsheet.core.store import StoreError, TabularStore
from questsheet.observability.metrics import MetricsStore

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TaskSnapshot:
    """Immutable copy of the task dataset. Replaced wholesale, never mutated."""

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    fetched_at: float
    index: dict[str, int] = field(default_factory=dict, compare=False)

    @classmethod
    def from_values(cls, values: list[list[str]], fetched_at: float) -> TaskSnapshot:
        headers = tuple(values[0]) if values else ()
        rows = tuple(tuple(row) for row in values[1:])
        index: dict[str, int] = {}
        for position, row in enumerate(rows):
            target = normalize_text(row[0]) if row else ""
            if target:
                # First row wins, like a top-down scan.
                index.setdefault(target, position)
        return cls(headers=headers, rows=rows, fetched_at=fetched_at, index=index)

    def lookup(self, target: str) -> dict[str, str] | None:
        position = self.index.get(normalize_text(target))
        if position is None:
            return None
        return row_to_record(self.headers, self.rows[position])


class TaskCache:
    """
    Process-scoped task cache.

    Created once at startup and shared by reference with request handlers.
    `clock` is monotonic seconds; injectable for tests.
    """

    def __init__(
        self,
        store: TabularStore,
        range_: str,
        ttl_seconds: float = 10.0,
        grace_seconds: float = 0.15,
        metrics: MetricsStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._range = range_
        self._ttl = ttl_seconds
        self._grace = grace_seconds
        self._metrics = metrics or MetricsStore()
        self._clock = clock
        self._snapshot: TaskSnapshot | None = None
        self._refresh_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> TaskSnapshot | None:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def is_fresh(self) -> bool:
        snapshot = self._snapshot
        return snapshot is not None and self._clock() - snapshot.fetched_at < self._ttl

    def age_ms(self) -> int | None:
        """Milliseconds since the live snapshot was fetched; None before the first one."""
        if self._snapshot is None:
            return None
        return int((self._clock() - self._snapshot.fetched_at) * 1000)

    def row_count(self) -> int:
        return len(self._snapshot.rows) if self._snapshot else 0

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def _lookup(self, target: str) -> dict[str, str] | None:
        snapshot = self._snapshot
        return snapshot.lookup(target) if snapshot else None

    async def get_task(self, target: str) -> dict[str, str] | None:
        """Return the record for `target`, possibly stale, or None."""
        hit = self._lookup(target)
        if hit is not None and self.is_fresh():
            return hit

        refresh = self.trigger_refresh()
        if hit is not None:
            return hit

        if self._grace > 0:
            # asyncio.wait never cancels the shared refresh on timeout.
            await asyncio.wait({refresh}, timeout=self._grace)
        return self._lookup(target)

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def trigger_refresh(self) -> asyncio.Task[None]:
        """Start a background refresh, or join the one already in flight."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh(), name="task-cache-refresh")
        return self._refresh_task

    async def refresh(self) -> None:
        """Refresh and wait for it (startup warm-up, tests)."""
        await self.trigger_refresh()

    async def aclose(self) -> None:
        """Cancel an in-flight refresh at shutdown."""
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _refresh(self) -> None:
        self._metrics.increment("cache_refreshes")
        try:
            values = await self._store.read_range(self._range)
        except StoreError as exc:
            self._metrics.increment("cache_refresh_failures")
            log.warning(
                "task_cache_refresh_failed",
                operation=exc.operation,
                range=self._range,
                error=exc.reason,
                kept_rows=self.row_count(),
            )
            return
        except Exception:
            self._metrics.increment("cache_refresh_failures")
            log.exception("task_cache_refresh_crashed", range=self._range, kept_rows=self.row_count())
            return

        self._snapshot = TaskSnapshot.from_values(values, fetched_at=self._clock())
        log.debug("task_cache_refreshed", range=self._range, rows=len(self._snapshot.rows))


__all__ = ["TaskCache", "TaskSnapshot"]
