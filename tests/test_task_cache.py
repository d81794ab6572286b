"""
Tests for the stale-while-revalidate task cache.
"""

import asyncio

import pytest

from conftest import TASK_RANGE, TASK_TAB, TASK_ROWS
from questsheet.modules.tasks.cache import TaskCache, TaskSnapshot


def _cache(store, clock, metrics, ttl=10.0, grace=0.15):
    return TaskCache(store, TASK_RANGE, ttl_seconds=ttl, grace_seconds=grace, metrics=metrics, clock=clock)


class TestSnapshot:
    """Snapshot construction and lookup."""

    def test_headers_and_rows(self):
        snapshot = TaskSnapshot.from_values(TASK_ROWS, fetched_at=0.0)
        assert snapshot.headers == ("target", "title", "hint")
        assert len(snapshot.rows) == 3

    def test_lookup_trims_both_sides(self):
        snapshot = TaskSnapshot.from_values(TASK_ROWS, fetched_at=0.0)
        assert snapshot.lookup(" 03傳 ")["title"] == "Relay station"
        assert snapshot.lookup("12織")["title"] == "Weaving room"

    def test_first_duplicate_wins(self):
        values = [["target", "title"], ["01文", "first"], ["01文", "second"]]
        snapshot = TaskSnapshot.from_values(values, fetched_at=0.0)
        assert snapshot.lookup("01文") == {"target": "01文", "title": "first"}

    def test_blank_target_never_matches(self):
        values = [["target", "title"], ["", "orphan"]]
        snapshot = TaskSnapshot.from_values(values, fetched_at=0.0)
        assert snapshot.lookup("") is None

    def test_empty_dataset(self):
        snapshot = TaskSnapshot.from_values([], fetched_at=0.0)
        assert snapshot.headers == ()
        assert snapshot.lookup("01文") is None


@pytest.mark.asyncio
async def test_cold_start_waits_for_refresh(workbook, clock, metrics):
    cache = _cache(workbook, clock, metrics)

    record = await cache.get_task("03傳")

    assert record == {"target": "03傳", "title": "Relay station", "hint": "Past the gate"}
    assert workbook.count("read_range") == 1


@pytest.mark.asyncio
async def test_cold_start_miss_returns_none_after_grace(workbook, clock, metrics):
    workbook.gates["read_range"] = asyncio.Event()
    cache = _cache(workbook, clock, metrics, grace=0.02)

    assert await cache.get_task("03傳") is None
    assert cache.refreshing

    workbook.gates["read_range"].set()
    await cache.trigger_refresh()
    assert cache.snapshot is not None


@pytest.mark.asyncio
async def test_unknown_target_is_none(workbook, clock, metrics):
    cache = _cache(workbook, clock, metrics, grace=0.01)
    await cache.refresh()

    assert await cache.get_task("99無") is None


@pytest.mark.asyncio
async def test_fresh_hit_does_not_touch_store(workbook, clock, metrics):
    cache = _cache(workbook, clock, metrics)
    await cache.refresh()

    clock.advance(9.9)
    for _ in range(20):
        assert (await cache.get_task("01文"))["title"] == "Find the library"

    assert workbook.count("read_range") == 1


@pytest.mark.asyncio
async def test_staleness_bound(workbook, clock, metrics):
    """Within TTL the old snapshot is served; after TTL the update shows up."""
    cache = _cache(workbook, clock, metrics, ttl=10.0)
    await cache.refresh()

    changed = [list(row) for row in TASK_ROWS]
    changed[1][1] = "Library moved"
    workbook.set_tab(TASK_TAB, changed)

    clock.advance(10.0 - 0.001)
    assert (await cache.get_task("01文"))["title"] == "Find the library"
    assert not cache.refreshing

    clock.advance(0.002)
    # Stale hit: served immediately while the refresh runs in the background.
    assert (await cache.get_task("01文"))["title"] == "Find the library"
    assert cache.refreshing

    await cache.trigger_refresh()
    assert (await cache.get_task("01文"))["title"] == "Library moved"


@pytest.mark.asyncio
async def test_concurrent_triggers_share_one_refresh(workbook, clock, metrics):
    workbook.gates["read_range"] = asyncio.Event()
    cache = _cache(workbook, clock, metrics, grace=0.01)

    tasks = {cache.trigger_refresh() for _ in range(5)}
    lookups = await asyncio.gather(*(cache.get_task("01文") for _ in range(10)))
    assert all(result is None for result in lookups)
    assert len(tasks) == 1
    assert cache.trigger_refresh() in tasks

    workbook.gates["read_range"].set()
    await tasks.pop()

    assert workbook.count("read_range") == 1
    assert metrics.get_counter("cache_refreshes") == 1


@pytest.mark.asyncio
async def test_failed_refresh_keeps_snapshot(workbook, clock, metrics):
    cache = _cache(workbook, clock, metrics)
    await cache.refresh()
    before = cache.snapshot

    workbook.always_fail.add("read_range")
    clock.advance(30)

    assert (await cache.get_task("01文"))["title"] == "Find the library"
    await cache.trigger_refresh()

    assert cache.snapshot is before
    assert metrics.get_counter("cache_refresh_failures") == 1


@pytest.mark.asyncio
async def test_age_and_row_count(workbook, clock, metrics):
    cache = _cache(workbook, clock, metrics)
    assert cache.age_ms() is None
    assert cache.row_count() == 0

    await cache.refresh()
    clock.advance(1.5)

    assert cache.age_ms() == 1500
    assert cache.row_count() == 3


@pytest.mark.asyncio
async def test_aclose_cancels_pending_refresh(workbook, clock, metrics):
    workbook.gates["read_range"] = asyncio.Event()
    cache = _cache(workbook, clock, metrics)
    cache.trigger_refresh()
    await asyncio.sleep(0)

    await cache.aclose()

    assert not cache.refreshing
    assert cache.snapshot is None
