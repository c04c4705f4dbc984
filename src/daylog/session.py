"""Day-scoped view of entries and activity, plus the running stopwatch."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from . import db
from .activity import ActivityAggregator, ProcessUsage, derive_process_runs
from .config import TimelineSettings
from .errors import (
    EntryNotFoundError,
    InvalidEntryError,
    OverlapError,
    StoreError,
    TimerStateError,
)
from .hover import HoverCard, build_hover_card
from .interaction import ProposeCreate, ProposeUpdateRange
from .intervals import IntervalSet
from .models import DAY, Category, ProcessRun, ProcessSample, TimeEntry, start_of_day
from .overlay import Point
from .preferences import ActiveTimer, Preferences
from .store import EntryStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TimerSession:
    """Stopwatch backed by a growing time entry."""

    def __init__(
        self,
        store: EntryStore,
        preferences: Preferences,
        *,
        settings: Optional[TimelineSettings] = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._store = store
        self._preferences = preferences
        self.settings = settings or TimelineSettings()
        self._clock = clock
        self.active: Optional[ActiveTimer] = preferences.load().active_timer

    @property
    def is_running(self) -> bool:
        return self.active is not None

    def elapsed(self) -> timedelta:
        if self.active is None:
            return timedelta(0)
        return max(timedelta(0), self._clock() - self.active.start_time)

    async def start(self, label: str, category_id: Optional[int] = None) -> TimeEntry:
        if self.active is not None:
            raise TimerStateError("A timer is already running")
        label = label.strip()
        if not label:
            raise InvalidEntryError("Label cannot be empty")
        now = self._clock()
        entry = await self._store.propose_create(
            now, now + self.settings.timer_placeholder, label, category_id
        )
        self._set_active(
            ActiveTimer(
                entry_id=entry.id,
                start_time=entry.start_time,
                label=entry.label,
                category_id=entry.category_id,
            )
        )
        logger.info("Timer started for entry %s (%s)", entry.id, entry.label)
        return entry

    async def grow(self) -> Optional[TimeEntry]:
        """Extend the running entry to now.

        Neighbour clamping and the minimum duration do not apply: a running
        entry has no following neighbour.
        """
        active = self.active
        if active is None:
            return None
        end = max(self._clock(), active.start_time + self.settings.timer_placeholder)
        try:
            return await self._store.propose_update_range(active.entry_id, active.start_time, end)
        except EntryNotFoundError:
            logger.warning("Timer entry %s no longer exists; stopping timer", active.entry_id)
            self._set_active(None)
            return None

    async def stop(self) -> Optional[TimeEntry]:
        if self.active is None:
            raise TimerStateError("No timer is running")
        entry = await self.grow()
        self._set_active(None)
        if entry is not None:
            logger.info("Timer stopped for entry %s", entry.id)
        return entry

    async def restart(self, entry: TimeEntry) -> TimeEntry:
        """Resume ``entry`` as the running timer, extending it to now."""
        if self.active is not None:
            raise TimerStateError("Stop the running timer before restarting another entry")
        now = max(self._clock(), entry.start_time + self.settings.timer_placeholder)
        updated = await self._store.propose_update_range(entry.id, entry.start_time, now)
        self._set_active(
            ActiveTimer(
                entry_id=updated.id,
                start_time=updated.start_time,
                label=updated.label,
                category_id=updated.category_id,
            )
        )
        return updated

    def _set_active(self, timer: Optional[ActiveTimer]) -> None:
        self.active = timer
        state = self._preferences.load()
        state.active_timer = timer
        self._preferences.save(state)


class DayTimeline:
    """Read-mostly projection of one day, refreshed from the entry store.

    Every refresh captures the selected day before awaiting the store and
    drops its result if the user navigated to another day meanwhile.
    """

    def __init__(
        self,
        store: EntryStore,
        preferences: Preferences,
        *,
        settings: Optional[TimelineSettings] = None,
        clock: Clock = datetime.now,
        day: Optional[datetime] = None,
    ) -> None:
        self._store = store
        self.preferences = preferences
        self.settings = settings or TimelineSettings()
        self._clock = clock
        self.day_start = start_of_day(day or clock())
        self.intervals = IntervalSet(self.day_start)
        self.samples: list[ProcessSample] = []
        self.aggregator = ActivityAggregator([], last_sample_fill=self.settings.last_sample_fill)
        self.screenshot_timestamps: list[datetime] = []
        self.categories: dict[int, Category] = {}
        self.timer = TimerSession(store, preferences, settings=self.settings, clock=clock)

    @property
    def day_end(self) -> datetime:
        return self.day_start + DAY

    @property
    def is_live(self) -> bool:
        return self.day_start <= self._clock() < self.day_end

    def select_day(self, day: datetime) -> None:
        day_start = start_of_day(day)
        if day_start == self.day_start:
            return
        self.day_start = day_start
        self.intervals.reset(day_start, [])
        self._set_samples([])
        self.screenshot_timestamps = []

    def shift_day(self, offset: int) -> None:
        self.select_day(self.day_start + timedelta(days=offset))

    def go_to_today(self) -> None:
        self.select_day(self._clock())

    def _set_samples(self, samples: list[ProcessSample]) -> None:
        self.samples = list(samples)
        self.aggregator = ActivityAggregator(
            self.samples, last_sample_fill=self.settings.last_sample_fill
        )

    async def refresh(self) -> None:
        await self.refresh_entries()
        await self.refresh_activity()
        await self.refresh_categories()

    async def refresh_entries(self) -> bool:
        day_key = self.day_start
        entries = await self._store.list_entries(day_key)
        if day_key != self.day_start:
            logger.debug("Discarding entries for %s; %s is selected", day_key, self.day_start)
            return False
        self.intervals.reset(day_key, entries)
        return True

    async def refresh_activity(self) -> bool:
        day_key = self.day_start
        samples = await self._store.list_process_samples(day_key)
        screenshots = await self._store.list_screenshot_timestamps(day_key)
        if day_key != self.day_start:
            logger.debug("Discarding activity for %s; %s is selected", day_key, self.day_start)
            return False
        self._set_samples(samples)
        self.screenshot_timestamps = screenshots
        return True

    async def refresh_categories(self) -> None:
        categories = await self._store.list_categories()
        self.categories = {category.id: category for category in categories}

    async def poll_once(self) -> bool:
        """Refresh samples and screenshot markers while the day is live."""
        if not self.is_live:
            return False
        return await self.refresh_activity()

    async def run_polling(self, stop_event: asyncio.Event) -> None:
        await _run_periodically(self.poll_once, self.settings.poll_interval, stop_event)

    async def run_timer_growth(self, stop_event: asyncio.Event) -> None:
        await _run_periodically(self.tick_timer, self.settings.timer_growth_interval, stop_event)

    def process_runs(self) -> list[ProcessRun]:
        return derive_process_runs(
            self.intervals.entries, self.aggregator, self.day_start, self.day_end
        )

    def process_run_at(self, timestamp: datetime) -> Optional[ProcessRun]:
        for run in self.process_runs():
            if run.range.contains(timestamp):
                return run
        return None

    def usage_between(
        self, start: datetime, end: datetime, limit: Optional[int] = None
    ) -> list[ProcessUsage]:
        limit = self.settings.top_process_limit if limit is None else limit
        return self.aggregator.top_processes(start, end, limit)

    def hover_card(self, timestamp: datetime, anchor: Point) -> HoverCard:
        return build_hover_card(
            timestamp,
            anchor,
            self.intervals,
            self.aggregator,
            category_names={key: category.name for key, category in self.categories.items()},
            limit=self.settings.top_process_limit,
        )

    async def lookup_screenshot(self, timestamp: datetime) -> Optional[str]:
        return await self._store.lookup_screenshot(timestamp)

    async def submit_create(
        self,
        intent: ProposeCreate,
        label: str,
        category_id: Optional[int] = None,
    ) -> TimeEntry:
        if self.intervals.overlaps(intent.start, intent.end):
            logger.info("Rejecting create %s-%s: overlaps an entry", intent.start, intent.end)
            raise OverlapError("Time entry overlaps with an existing entry")
        entry = await self._apply(
            self._store.propose_create(intent.start, intent.end, label, category_id)
        )
        await self.refresh_entries()
        return entry

    async def submit_update_range(self, intent: ProposeUpdateRange) -> TimeEntry:
        if self.intervals.overlaps(intent.start, intent.end, exclude_id=intent.entry_id):
            logger.info("Rejecting resize of entry %s: overlaps a neighbour", intent.entry_id)
            raise OverlapError("Time entry overlaps with an existing entry")
        entry = await self._apply(
            self._store.propose_update_range(intent.entry_id, intent.start, intent.end)
        )
        await self.refresh_entries()
        return entry

    async def update_details(
        self,
        entry_id: int,
        *,
        label: object = db.UNSET,
        category_id: object = db.UNSET,
    ) -> TimeEntry:
        entry = await self._store.update_details(entry_id, label=label, category_id=category_id)
        await self.refresh_entries()
        return entry

    async def delete_entry(self, entry_id: int) -> None:
        await self._store.propose_delete(entry_id)
        if self.timer.active is not None and self.timer.active.entry_id == entry_id:
            await self.timer.stop()
        await self.refresh_entries()

    async def start_timer(self, label: str, category_id: Optional[int] = None) -> TimeEntry:
        entry = await self._apply(self.timer.start(label, category_id))
        await self.refresh_entries()
        return entry

    async def stop_timer(self) -> Optional[TimeEntry]:
        entry = await self.timer.stop()
        await self.refresh_entries()
        return entry

    async def restart_entry(self, entry: TimeEntry) -> TimeEntry:
        updated = await self._apply(self.timer.restart(entry))
        await self.refresh_entries()
        return updated

    async def tick_timer(self) -> bool:
        if not self.timer.is_running:
            return False
        entry = await self.timer.grow()
        if entry is None or self.day_start <= entry.start_time < self.day_end:
            await self.refresh_entries()
        return entry is not None

    async def _apply(self, command: Awaitable[TimeEntry]) -> TimeEntry:
        try:
            return await command
        except OverlapError:
            logger.info("Entry store rejected an overlapping range; refreshing entries")
            await self.refresh_entries()
            raise


async def _run_periodically(
    action: Callable[[], Awaitable[object]],
    interval: timedelta,
    stop_event: asyncio.Event,
) -> None:
    while not stop_event.is_set():
        try:
            await action()
        except StoreError:
            logger.exception("Periodic refresh failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval.total_seconds())
        except asyncio.TimeoutError:
            continue
