"""Debounced, latest-wins hover lookups and the hover card they feed."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Mapping, Optional

from .activity import ActivityAggregator, ProcessUsage
from .errors import StoreError
from .intervals import IntervalSet
from .models import TimeRange
from .overlay import Point, Rect
from .scheduling import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

ScreenshotLookup = Callable[[datetime], Awaitable[Optional[str]]]


@dataclass(slots=True)
class HoverCard:
    anchor: Point
    timestamp: datetime
    time_range: TimeRange
    label: Optional[str] = None
    category_name: Optional[str] = None
    screenshot: Optional[str] = None
    top_processes: list[ProcessUsage] = field(default_factory=list)
    position: Optional[Rect] = None


def build_hover_card(
    timestamp: datetime,
    anchor: Point,
    intervals: IntervalSet,
    aggregator: ActivityAggregator,
    *,
    category_names: Optional[Mapping[int, str]] = None,
    limit: int = 3,
) -> HoverCard:
    """Describe the entry (or free gap) under ``timestamp``."""
    entry = intervals.entry_at(timestamp)
    if entry is not None:
        time_range = entry.range
        category_name = None
        if entry.category_id is not None and category_names:
            category_name = category_names.get(entry.category_id)
        label: Optional[str] = entry.label
    else:
        time_range = intervals.gap_containing(timestamp) or TimeRange(timestamp, timestamp)
        label = None
        category_name = None
    return HoverCard(
        anchor=anchor,
        timestamp=timestamp,
        time_range=time_range,
        label=label,
        category_name=category_name,
        top_processes=aggregator.top_processes(time_range.start, time_range.end, limit),
    )


class HoverLookupCoordinator:
    """Debounce hover moves and apply only the newest lookup result.

    The axis and the card form one hover region: leaving either starts the
    fade timer, entering either cancels it.
    """

    def __init__(
        self,
        lookup: ScreenshotLookup,
        scheduler: Scheduler,
        *,
        on_result: Callable[[datetime, Optional[str]], None],
        on_clear: Callable[[], None],
        debounce: timedelta = timedelta(milliseconds=120),
        fade: timedelta = timedelta(milliseconds=500),
    ) -> None:
        self._lookup = lookup
        self._scheduler = scheduler
        self._on_result = on_result
        self._on_clear = on_clear
        self.debounce = debounce
        self.fade = fade
        self._generation = 0
        self._debounce_handle: Optional[TimerHandle] = None
        self._fade_handle: Optional[TimerHandle] = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def latest_request_id(self) -> int:
        return self._generation

    @property
    def is_fading(self) -> bool:
        return self._fade_handle is not None

    def hover(self, timestamp: datetime) -> None:
        self._cancel_fade()
        self._cancel_debounce()
        self._debounce_handle = self._scheduler.call_later(
            self.debounce.total_seconds(), lambda: self._fire(timestamp)
        )

    def leave(self) -> None:
        self._generation += 1
        self._cancel_debounce()
        if self._fade_handle is None:
            self._fade_handle = self._scheduler.call_later(
                self.fade.total_seconds(), self._expire
            )

    def enter_card(self) -> None:
        self._cancel_fade()

    def leave_card(self) -> None:
        self.leave()

    def close(self) -> None:
        self._generation += 1
        self._cancel_debounce()
        self._cancel_fade()
        for task in list(self._tasks):
            task.cancel()

    def _fire(self, timestamp: datetime) -> None:
        self._debounce_handle = None
        self._generation += 1
        request_id = self._generation
        task = asyncio.get_running_loop().create_task(self._resolve(request_id, timestamp))
        self._tasks.add(task)
        task.add_done_callback(self._finish)

    def _finish(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Screenshot lookup crashed", exc_info=exc)

    async def _resolve(self, request_id: int, timestamp: datetime) -> None:
        try:
            result = await self._lookup(timestamp)
        except StoreError:
            if request_id != self._generation:
                return
            logger.exception("Screenshot lookup failed for %s", timestamp)
            result = None
        if request_id != self._generation:
            logger.debug("Dropping stale hover result %d (latest %d)", request_id, self._generation)
            return
        self._on_result(timestamp, result)

    def _expire(self) -> None:
        self._fade_handle = None
        self._on_clear()

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _cancel_fade(self) -> None:
        if self._fade_handle is not None:
            self._fade_handle.cancel()
            self._fade_handle = None
