"""
QuestSheet Logs - Completion Log Write Queue.

Completion events are buffered in memory and appended to the completion log
tab in batches by a periodic flusher, so callers never wait on the store.

A batch is retried with exponential backoff; one that exhausts its retries
is dropped and counted in `log_dropped`.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from questsheet.core.retry import Sleep, retry_async
from questsheet.core.rows import sheet_timestamp
from questsheet.core.store import StoreError, TabularStore
from questsheet.observability.metrics import MetricsStore

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LogEntry:
    """One completion event; every value is fixed at enqueue time."""

    user_id: str
    target: str
    status: str = "OK"
    key: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> list[str]:
        """Sheet row: time, userId, target, status, key."""
        return [sheet_timestamp(self.timestamp), self.user_id, self.target, self.status, self.key]


def _report_crash(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        log.error("log_flush_crashed", error=repr(task.exception()))


class CompletionLogQueue:
    """
    Process-scoped FIFO of completion events with a single background consumer.

    Lifecycle: `start()` at app startup launches the ticker; every tick starts
    a flush unless one is already running. `stop()` at shutdown cancels the
    ticker and makes one last flush attempt.
    """

    def __init__(
        self,
        store: TabularStore,
        range_: str,
        batch_size: int = 200,
        flush_interval: float = 0.5,
        batch_pause: float = 0.15,
        retry_attempts: int = 5,
        retry_base_delay: float = 0.12,
        metrics: MetricsStore | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._store = store
        self._range = range_
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._batch_pause = batch_pause
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._metrics = metrics or MetricsStore()
        self._sleep = sleep

        self._entries: deque[LogEntry] = deque()
        self._flushing = False
        self._ticker: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Task[int] | None = None

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def enqueue(self, entry: LogEntry) -> None:
        """Buffer an entry. Never blocks, never fails."""
        self._entries.append(entry)
        self._metrics.increment("log_enqueued")

    @property
    def depth(self) -> int:
        return len(self._entries)

    @property
    def flushing(self) -> bool:
        return self._flushing

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    def _take_batch(self) -> list[LogEntry]:
        batch = []
        while self._entries and len(batch) < self._batch_size:
            batch.append(self._entries.popleft())
        return batch

    async def flush(self) -> int:
        """
        Drain the queue front-to-back in bounded batches.

        Returns the number of rows appended by this run; 0 when another flush
        was already running. A batch that exhausts its retries is dropped and
        ends the run, leaving later entries for the next tick.
        """
        if self._flushing:
            return 0
        self._flushing = True
        written = 0
        try:
            while self._entries:
                batch = self._take_batch()
                rows = [entry.to_row() for entry in batch]
                try:
                    await retry_async(
                        lambda: self._store.append_rows(self._range, rows),
                        attempts=self._retry_attempts,
                        base_delay=self._retry_base_delay,
                        operation="append_rows",
                        sleep=self._sleep,
                    )
                except StoreError as exc:
                    self._metrics.increment("log_dropped", len(batch))
                    self._metrics.record_error("LOG_BATCH_DROPPED")
                    log.error(
                        "log_batch_dropped",
                        operation=exc.operation,
                        range=self._range,
                        size=len(batch),
                        first_user=batch[0].user_id,
                        last_user=batch[-1].user_id,
                        error=exc.reason,
                        remaining=len(self._entries),
                    )
                    break

                written += len(batch)
                self._metrics.increment("log_flushed", len(batch))
                await self._sleep(self._batch_pause)
        finally:
            self._flushing = False
        return written

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def tick(self) -> asyncio.Task[int] | None:
        """Start a flush in the background unless one is running."""
        if self._flushing or (self._flush_task is not None and not self._flush_task.done()):
            return None
        if not self._entries:
            return None
        self._flush_task = asyncio.create_task(self.flush(), name="log-queue-flush")
        self._flush_task.add_done_callback(_report_crash)
        return self._flush_task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            self.tick()

    def start(self) -> None:
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self._run(), name="log-queue-ticker")

    async def stop(self) -> None:
        """Cancel the ticker, let a running flush finish, then flush what is left."""
        if self._ticker is not None:
            self._ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None
        if self._flush_task is not None:
            await asyncio.wait({self._flush_task})
            self._flush_task = None
        if self._entries:
            await self.flush()
        if self._entries:
            log.error("log_queue_abandoned", range=self._range, remaining=len(self._entries))


__all__ = ["CompletionLogQueue", "LogEntry"]
