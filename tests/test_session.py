"""Day view refreshes, intent submission and the stopwatch."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from daylog.db import database_connection, delete_entry, insert_process_samples
from daylog.errors import OverlapError, StoreError, TimerStateError
from daylog.interaction import ProposeCreate, ProposeUpdateRange
from daylog.models import ProcessSample, TimeRange
from daylog.overlay import Point
from daylog.session import DayTimeline, _run_periodically
from daylog.store import SqliteEntryStore

from tests.conftest import DAY_START, at


class GatedStore(SqliteEntryStore):
    """Holds ``list_entries`` until the test opens the gate."""

    def __init__(self, db_path) -> None:
        super().__init__(db_path)
        self.gate = asyncio.Event()
        self.creates = 0

    async def list_entries(self, day: datetime):
        await self.gate.wait()
        return await super().list_entries(day)

    async def propose_create(self, start, end, label, category_id=None):
        self.creates += 1
        return await super().propose_create(start, end, label, category_id)


@pytest.fixture()
def timeline(store, preferences, settings, clock) -> DayTimeline:
    return DayTimeline(store, preferences, settings=settings, clock=clock)


@pytest.mark.asyncio
async def test_refresh_builds_intervals_and_runs(timeline, seed_entry, db_path) -> None:
    seed_entry(at(9), at(10), "A")
    seed_entry(at(14), at(15, 30), "B")
    with database_connection(db_path) as conn:
        insert_process_samples(
            conn, [ProcessSample(at(11), "code"), ProcessSample(at(11, 30), "code")]
        )

    await timeline.refresh()

    assert [entry.label for entry in timeline.intervals] == ["A", "B"]
    assert timeline.intervals.gaps()[1] == TimeRange(at(10), at(14))
    runs = timeline.process_runs()
    assert [(run.start_time, run.process_name) for run in runs] == [(at(10), "code")]
    assert timeline.process_run_at(at(12)).process_name == "code"
    assert timeline.usage_between(at(11), at(12))[0].seconds == 1801


@pytest.mark.asyncio
async def test_result_for_previous_day_is_discarded(
    db_path, preferences, settings, clock, seed_entry
):
    seed_entry(at(9), at(10), "A")
    store = GatedStore(db_path)
    timeline = DayTimeline(store, preferences, settings=settings, clock=clock)

    pending = asyncio.create_task(timeline.refresh_entries())
    await asyncio.sleep(0)
    timeline.shift_day(1)
    store.gate.set()

    assert await pending is False
    assert timeline.day_start == DAY_START + timedelta(days=1)
    assert len(timeline.intervals) == 0


@pytest.mark.asyncio
async def test_local_overlap_never_reaches_the_store(
    db_path, preferences, settings, clock, seed_entry
):
    seed_entry(at(9), at(10), "A")
    store = GatedStore(db_path)
    store.gate.set()
    timeline = DayTimeline(store, preferences, settings=settings, clock=clock)
    await timeline.refresh_entries()

    with pytest.raises(OverlapError):
        await timeline.submit_create(ProposeCreate(at(9, 30), at(11)), "B")
    assert store.creates == 0

    created = await timeline.submit_create(ProposeCreate(at(10), at(11)), "B")
    assert store.creates == 1
    assert created.id in timeline.intervals


@pytest.mark.asyncio
async def test_store_overlap_refreshes_stale_intervals(timeline, seed_entry) -> None:
    await timeline.refresh_entries()
    hidden = seed_entry(at(13), at(14), "Added elsewhere")

    with pytest.raises(OverlapError):
        await timeline.submit_create(ProposeCreate(at(12), at(13, 30)), "Mine")

    assert hidden.id in timeline.intervals


@pytest.mark.asyncio
async def test_submit_resize_updates_intervals(timeline, seed_entry) -> None:
    first = seed_entry(at(9), at(10), "A")
    await timeline.refresh_entries()

    await timeline.submit_update_range(ProposeUpdateRange(first.id, at(9), at(11)))
    assert timeline.intervals.get(first.id).end_time == at(11)


@pytest.mark.asyncio
async def test_timer_grows_and_stops(timeline, preferences, clock) -> None:
    entry = await timeline.start_timer("Focus")
    assert entry.end_time == at(9, 0, 1)
    assert preferences.load().active_timer.entry_id == entry.id

    clock.advance(timedelta(minutes=10))
    assert await timeline.tick_timer()
    assert timeline.intervals.get(entry.id).end_time == at(9, 10)

    clock.advance(timedelta(minutes=5))
    stopped = await timeline.stop_timer()
    assert stopped.end_time == at(9, 15)
    assert preferences.load().active_timer is None
    assert not await timeline.tick_timer()


@pytest.mark.asyncio
async def test_second_timer_is_refused(timeline) -> None:
    await timeline.start_timer("Focus")
    with pytest.raises(TimerStateError):
        await timeline.start_timer("Other")


@pytest.mark.asyncio
async def test_timer_survives_restart_of_the_view(timeline, store, preferences, settings, clock):
    entry = await timeline.start_timer("Focus")
    clock.advance(timedelta(minutes=3))

    reopened = DayTimeline(store, preferences, settings=settings, clock=clock)
    assert reopened.timer.is_running
    assert reopened.timer.elapsed() == timedelta(minutes=3)
    await reopened.tick_timer()
    assert reopened.intervals.get(entry.id).end_time == at(9, 3)


@pytest.mark.asyncio
async def test_missing_timer_entry_ends_the_session(timeline, preferences, db_path, clock):
    entry = await timeline.start_timer("Focus")
    with database_connection(db_path) as conn:
        delete_entry(conn, entry.id)

    clock.advance(timedelta(seconds=3))
    assert not await timeline.tick_timer()
    assert not timeline.timer.is_running
    assert preferences.load().active_timer is None


@pytest.mark.asyncio
async def test_deleting_running_entry_stops_timer(timeline) -> None:
    entry = await timeline.start_timer("Focus")
    await timeline.delete_entry(entry.id)
    assert not timeline.timer.is_running
    assert len(timeline.intervals) == 0


@pytest.mark.asyncio
async def test_restart_entry_resumes_it(timeline, seed_entry, clock) -> None:
    earlier = seed_entry(at(8), at(8, 30), "Email")
    await timeline.refresh_entries()
    clock.advance(timedelta(minutes=20))

    resumed = await timeline.restart_entry(earlier)
    assert resumed.end_time == at(9, 20)
    assert timeline.timer.active.entry_id == earlier.id


@pytest.mark.asyncio
async def test_polling_only_while_day_is_live(timeline, db_path) -> None:
    with database_connection(db_path) as conn:
        insert_process_samples(conn, [ProcessSample(at(8), "code")])

    assert await timeline.poll_once()
    assert len(timeline.samples) == 1

    timeline.shift_day(-1)
    assert not timeline.is_live
    assert not await timeline.poll_once()

    timeline.go_to_today()
    assert timeline.day_start == DAY_START


@pytest.mark.asyncio
async def test_hover_card_names_category(timeline, seed_entry, db_path) -> None:
    from daylog.db import insert_category

    with database_connection(db_path) as conn:
        category = insert_category(conn, "Admin", "#123456")
    seed_entry(at(8), at(8, 30), "Email", category_id=category.id)
    await timeline.refresh()

    card = timeline.hover_card(at(8, 10), Point(5, 5))
    assert card.category_name == "Admin"
    assert card.time_range == TimeRange(at(8), at(8, 30))


@pytest.mark.asyncio
async def test_periodic_loop_survives_store_errors() -> None:
    stop = asyncio.Event()
    calls: list[int] = []

    async def action() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise StoreError("temporarily unavailable")
        stop.set()

    await _run_periodically(action, timedelta(0), stop)
    assert len(calls) == 2
