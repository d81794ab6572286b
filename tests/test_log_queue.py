"""
Tests for the completion log write queue.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from conftest import LOG_RANGE, LOG_TAB
from questsheet.modules.logs.queue import CompletionLogQueue, LogEntry

T0 = datetime(2026, 10, 19, 9, 30, 0, 250000, tzinfo=timezone.utc)


def _queue(store, metrics, sleeper, **kwargs):
    params = dict(batch_size=200, batch_pause=0.15, retry_attempts=5, retry_base_delay=0.12)
    params.update(kwargs)
    return CompletionLogQueue(store, LOG_RANGE, metrics=metrics, sleep=sleeper, **params)


def _entries(n):
    return [LogEntry(user_id=f"U{i}", target="01文", timestamp=T0) for i in range(n)]


class TestLogEntry:
    def test_defaults(self):
        entry = LogEntry(user_id="U1", target="03傳")
        assert entry.status == "OK"
        assert entry.key == ""
        assert entry.timestamp.tzinfo is not None

    def test_row_layout(self):
        entry = LogEntry(user_id="U1", target="03傳", status="OK", key="", timestamp=T0)
        assert entry.to_row() == ["2026-10-19 09:30:00.250", "U1", "03傳", "OK", ""]


@pytest.mark.asyncio
async def test_enqueue_is_immediate_and_flush_appends(workbook, metrics, sleeper):
    queue = _queue(workbook, metrics, sleeper)

    queue.enqueue(LogEntry(user_id="U1", target="03傳", status="OK", key="", timestamp=T0))
    assert queue.depth == 1
    assert workbook.writes == 0

    written = await queue.flush()

    assert written == 1
    assert queue.depth == 0
    assert workbook.tab(LOG_TAB)[1:] == [["2026-10-19 09:30:00.250", "U1", "03傳", "OK", ""]]
    assert metrics.get_counter("log_flushed") == 1


@pytest.mark.asyncio
async def test_flush_batches_in_order(workbook, metrics, sleeper):
    queue = _queue(workbook, metrics, sleeper)
    for entry in _entries(450):
        queue.enqueue(entry)

    assert await queue.flush() == 450

    assert [len(batch) for batch in workbook.appended] == [200, 200, 50]
    users = [row[1] for row in workbook.tab(LOG_TAB)[1:]]
    assert users == [f"U{i}" for i in range(450)]
    # One throttle pause after each successful batch.
    assert sleeper.delays == [0.15, 0.15, 0.15]


@pytest.mark.asyncio
async def test_retry_then_success_persists_once(workbook, metrics, sleeper):
    """Four failed appends then success: every entry written exactly once."""
    workbook.fail["append_rows"] = 4
    queue = _queue(workbook, metrics, sleeper)
    for entry in _entries(3):
        queue.enqueue(entry)

    assert await queue.flush() == 3

    assert workbook.count("append_rows") == 5
    assert len(workbook.appended) == 1
    assert [row[1] for row in workbook.tab(LOG_TAB)[1:]] == ["U0", "U1", "U2"]
    backoff = sleeper.delays[:-1]
    assert backoff == pytest.approx([0.12, 0.24, 0.48, 0.96])
    assert sum(backoff) == pytest.approx(0.12 * (1 + 2 + 4 + 8))


@pytest.mark.asyncio
async def test_exhausted_batch_is_dropped(workbook, metrics, sleeper):
    workbook.fail["append_rows"] = 5
    queue = _queue(workbook, metrics, sleeper, batch_size=2)
    for entry in _entries(3):
        queue.enqueue(entry)

    assert await queue.flush() == 0

    # First batch dropped, the run stops; the rest waits for the next tick.
    assert queue.depth == 1
    assert workbook.tab(LOG_TAB)[1:] == []
    assert metrics.get_counter("log_dropped") == 2

    assert await queue.flush() == 1
    assert [row[1] for row in workbook.tab(LOG_TAB)[1:]] == ["U2"]


@pytest.mark.asyncio
async def test_overlapping_flush_is_noop(workbook, metrics, sleeper):
    workbook.gates["append_rows"] = asyncio.Event()
    queue = _queue(workbook, metrics, sleeper)
    queue.enqueue(_entries(1)[0])

    first = asyncio.create_task(queue.flush())
    await asyncio.sleep(0)
    assert queue.flushing

    assert await queue.flush() == 0
    assert queue.tick() is None

    workbook.gates["append_rows"].set()
    assert await first == 1
    assert workbook.count("append_rows") == 1


@pytest.mark.asyncio
async def test_tick_skips_empty_queue(workbook, metrics, sleeper):
    queue = _queue(workbook, metrics, sleeper)
    assert queue.tick() is None


@pytest.mark.asyncio
async def test_enqueue_during_flush_is_picked_up(workbook, metrics, sleeper):
    workbook.gates["append_rows"] = asyncio.Event()
    queue = _queue(workbook, metrics, sleeper, batch_size=1)
    queue.enqueue(_entries(1)[0])

    flush = asyncio.create_task(queue.flush())
    await asyncio.sleep(0)
    queue.enqueue(LogEntry(user_id="late", target="02史", timestamp=T0))
    workbook.gates["append_rows"].set()

    assert await flush == 2
    assert [row[1] for row in workbook.tab(LOG_TAB)[1:]] == ["U0", "late"]


@pytest.mark.asyncio
async def test_ticker_flushes_within_interval(workbook, metrics):
    """Enqueue then one crash-free cycle: the row lands within ~650ms."""
    queue = CompletionLogQueue(workbook, LOG_RANGE, flush_interval=0.5, batch_pause=0.0, metrics=metrics)
    queue.start()
    try:
        queue.enqueue(LogEntry(user_id="U1", target="03傳", status="OK", key=""))
        await asyncio.sleep(0.65)
        rows = workbook.tab(LOG_TAB)[1:]
        assert len(rows) == 1
        assert rows[0][1:] == ["U1", "03傳", "OK", ""]
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_stop_flushes_remaining(workbook, metrics, sleeper):
    queue = _queue(workbook, metrics, sleeper)
    queue.start()
    for entry in _entries(5):
        queue.enqueue(entry)

    await queue.stop()

    assert queue.depth == 0
    assert len(workbook.tab(LOG_TAB)) == 6
