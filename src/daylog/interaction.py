"""Pointer-driven state machines for creating and resizing time entries.

Both controllers only compute previews and emit intents; the entry store
decides whether an intent is applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from .intervals import IntervalSet
from .models import TimeRange
from .scheduling import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_MIN_DURATION = timedelta(minutes=1)


class ResizeEdge(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Dragging:
    anchor: datetime
    current: datetime

    @property
    def preview(self) -> TimeRange:
        return TimeRange(min(self.anchor, self.current), max(self.anchor, self.current))


@dataclass(frozen=True, slots=True)
class Resizing:
    entry_id: int
    edge: ResizeEdge
    original_start: datetime
    original_end: datetime
    preview_start: datetime
    preview_end: datetime
    min_boundary: datetime
    max_boundary: datetime

    @property
    def preview(self) -> TimeRange:
        return TimeRange(self.preview_start, self.preview_end)

    @property
    def changed(self) -> bool:
        return (
            self.preview_start != self.original_start
            or self.preview_end != self.original_end
        )


InteractionState = Union[Idle, Dragging, Resizing]


@dataclass(frozen=True, slots=True)
class ProposeCreate:
    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class ProposeUpdateRange:
    entry_id: int
    start: datetime
    end: datetime


class DragSelectionController:
    """``Idle -> Dragging -> Idle`` selection of a new range."""

    def __init__(self, min_duration: timedelta = DEFAULT_MIN_DURATION) -> None:
        self.min_duration = min_duration
        self.state: Union[Idle, Dragging] = Idle()

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, Dragging)

    @property
    def preview(self) -> Optional[TimeRange]:
        if isinstance(self.state, Dragging):
            return self.state.preview
        return None

    def pointer_down(self, timestamp: datetime) -> None:
        self.state = Dragging(anchor=timestamp, current=timestamp)

    def pointer_move(self, timestamp: datetime) -> Optional[TimeRange]:
        if not isinstance(self.state, Dragging):
            return None
        self.state = replace(self.state, current=timestamp)
        return self.state.preview

    def pointer_up(self) -> Optional[ProposeCreate]:
        state = self.state
        self.state = Idle()
        if not isinstance(state, Dragging):
            return None
        selection = state.preview
        if selection.duration <= self.min_duration:
            logger.debug("Discarding %s selection below minimum duration", selection.duration)
            return None
        return ProposeCreate(start=selection.start, end=selection.end)

    def cancel(self) -> None:
        self.state = Idle()


class ResizeController:
    """``Idle -> Resizing(entry, edge) -> Idle`` edge drag of an existing entry."""

    def __init__(
        self,
        intervals: IntervalSet,
        scheduler: Scheduler,
        min_duration: timedelta = DEFAULT_MIN_DURATION,
    ) -> None:
        self.intervals = intervals
        self.min_duration = min_duration
        self.state: Union[Idle, Resizing] = Idle()
        self._scheduler = scheduler
        self._suppress_click = False

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, Resizing)

    @property
    def suppress_click(self) -> bool:
        return self._suppress_click

    def begin(self, entry_id: int, edge: ResizeEdge | str) -> bool:
        """Enter ``Resizing``; returns ``False`` if the edge cannot move at all."""
        entry = self.intervals.get(entry_id)
        if entry is None:
            return False
        edge = ResizeEdge(edge)
        bounds = self.intervals.neighbor_bounds_of(entry_id)
        if edge is ResizeEdge.START:
            min_boundary = bounds.previous_end
            max_boundary = entry.end_time - self.min_duration
        else:
            min_boundary = entry.start_time + self.min_duration
            max_boundary = bounds.next_start

        if max_boundary <= min_boundary:
            logger.debug("Refusing %s resize of entry %s: no room", edge.value, entry_id)
            return False

        self._suppress_click = True
        self.state = Resizing(
            entry_id=entry_id,
            edge=edge,
            original_start=entry.start_time,
            original_end=entry.end_time,
            preview_start=entry.start_time,
            preview_end=entry.end_time,
            min_boundary=min_boundary,
            max_boundary=max_boundary,
        )
        return True

    def pointer_move(self, timestamp: datetime) -> Optional[datetime]:
        state = self.state
        if not isinstance(state, Resizing):
            return None
        clamped = max(state.min_boundary, min(timestamp, state.max_boundary))
        if state.edge is ResizeEdge.START:
            if clamped != state.preview_start:
                self.state = replace(state, preview_start=clamped)
        elif clamped != state.preview_end:
            self.state = replace(state, preview_end=clamped)
        return clamped

    def pointer_up(self) -> Optional[ProposeUpdateRange]:
        state = self.state
        if not isinstance(state, Resizing):
            return None
        self.state = Idle()
        self._scheduler.call_soon(self._release_click_suppression)
        if not state.changed:
            return None
        return ProposeUpdateRange(
            entry_id=state.entry_id, start=state.preview_start, end=state.preview_end
        )

    def cancel(self) -> None:
        """Drop the preview without emitting an intent."""
        if isinstance(self.state, Resizing):
            self.state = Idle()
            self._scheduler.call_soon(self._release_click_suppression)

    def consume_click(self) -> bool:
        """Return ``True`` if a click on an entry body must be ignored."""
        if self._suppress_click:
            self._suppress_click = False
            return True
        return False

    def _release_click_suppression(self) -> None:
        self._suppress_click = False
