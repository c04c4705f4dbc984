"""Route pointer and wheel events on the axis to the interaction machines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from .config import TimelineSettings
from .hover import HoverCard, HoverLookupCoordinator
from .interaction import (
    DragSelectionController,
    InteractionState,
    ProposeCreate,
    ProposeUpdateRange,
    ResizeController,
    ResizeEdge,
    Resizing,
)
from .intervals import IntervalSet
from .models import TimeRange
from .overlay import HoverCardPositioner, Rect, Size
from .preferences import get_zoom_preference
from .projection import AxisViewport, TimeAxisProjection
from .scheduling import AsyncioScheduler, Scheduler
from .session import DayTimeline

logger = logging.getLogger(__name__)

Intent = Union[ProposeCreate, ProposeUpdateRange]


@dataclass(frozen=True, slots=True)
class LaneLayout:
    """Vertical bands of the axis, in pixels from its top edge."""

    height: float = 120.0
    entry_top: float = 20.0
    entry_height: float = 60.0
    process_top: float = 102.0
    process_height: float = 10.0
    min_handle_width: float = 6.0
    max_handle_width: float = 10.0

    @property
    def entry_bottom(self) -> float:
        return self.entry_top + self.entry_height

    def in_entry_lane(self, y: float) -> bool:
        return self.entry_top <= y < self.process_top

    def in_process_lane(self, y: float) -> bool:
        return y >= self.process_top

    def handle_width(self, block_width: float) -> float:
        return min(self.max_handle_width, max(self.min_handle_width, block_width / 2))


class HitKind(str, Enum):
    AXIS = "axis"
    ENTRY = "entry"
    HANDLE = "handle"


@dataclass(frozen=True, slots=True)
class HitTarget:
    kind: HitKind
    entry_id: Optional[int] = None
    edge: Optional[ResizeEdge] = None


class TimelineController:
    """Owns the drag and resize machines for one axis.

    Pointer coordinates are relative to the axis content (scroll already
    applied). At most one machine is active at a time.
    """

    def __init__(
        self,
        viewport: AxisViewport,
        intervals: IntervalSet,
        scheduler: Scheduler,
        *,
        settings: Optional[TimelineSettings] = None,
        layout: Optional[LaneLayout] = None,
        hover: Optional[HoverLookupCoordinator] = None,
        on_process_hover: Optional[Callable[[datetime], None]] = None,
        on_process_leave: Optional[Callable[[], None]] = None,
    ) -> None:
        self.settings = settings or TimelineSettings()
        self.viewport = viewport
        self.intervals = intervals
        self.layout = layout or LaneLayout()
        self.hover = hover
        self._on_process_hover = on_process_hover
        self._on_process_leave = on_process_leave
        self.drag = DragSelectionController(self.settings.min_entry_duration)
        self.resize = ResizeController(intervals, scheduler, self.settings.min_entry_duration)
        self.positioner = HoverCardPositioner(self.settings.card_margin, self.settings.card_offset)

    @property
    def projection(self) -> TimeAxisProjection:
        return self.viewport.projection

    @property
    def is_busy(self) -> bool:
        return self.drag.is_active or self.resize.is_active

    @property
    def state(self) -> InteractionState:
        if self.resize.is_active:
            return self.resize.state
        return self.drag.state

    def sync_day(self) -> None:
        """Follow the interval set to a newly selected day, dropping any gesture."""
        if self.viewport.day_start == self.intervals.day_start:
            return
        self.drag.cancel()
        self.resize.cancel()
        if self.hover is not None:
            self.hover.leave()
        self.viewport.set_day(self.intervals.day_start)

    def hit_test(self, x: float, y: float) -> HitTarget:
        layout = self.layout
        if not layout.entry_top <= y < layout.entry_bottom:
            return HitTarget(HitKind.AXIS)
        projection = self.projection
        for entry in reversed(self.intervals.entries):
            block_x, block_width = projection.span_to_pixels(entry.start_time, entry.end_time)
            if not block_x <= x <= block_x + block_width:
                continue
            handle = layout.handle_width(block_width)
            if layout.entry_top + 2 <= y < layout.entry_bottom - 2:
                if x >= block_x + block_width - handle:
                    return HitTarget(HitKind.HANDLE, entry.id, ResizeEdge.END)
                if x < block_x + handle:
                    return HitTarget(HitKind.HANDLE, entry.id, ResizeEdge.START)
            return HitTarget(HitKind.ENTRY, entry.id)
        return HitTarget(HitKind.AXIS)

    def pointer_down(self, x: float, y: float) -> bool:
        """Start a drag or resize; returns ``True`` if a machine became active."""
        if self.is_busy:
            return False
        target = self.hit_test(x, y)
        if target.kind is HitKind.HANDLE and target.entry_id is not None and target.edge:
            started = self.resize.begin(target.entry_id, target.edge)
            if started and self.hover is not None:
                self.hover.leave()
            return started
        if target.kind is HitKind.ENTRY or not self.layout.in_entry_lane(y):
            return False
        self.drag.pointer_down(self.projection.x_to_time(x))
        return True

    def pointer_move(self, x: float, y: float) -> None:
        timestamp = self.projection.x_to_time(x)
        if self.resize.is_active:
            self.resize.pointer_move(timestamp)
            return
        if self.layout.in_process_lane(y) and not self.drag.is_active:
            if self._on_process_hover is not None:
                self._on_process_hover(timestamp)
            return
        if self.drag.is_active:
            self.drag.pointer_move(timestamp)
        elif self.hover is not None:
            self.hover.hover(timestamp)

    def pointer_up(self) -> Optional[Intent]:
        if self.resize.is_active:
            intent: Optional[Intent] = self.resize.pointer_up()
        else:
            intent = self.drag.pointer_up()
        if intent is not None:
            logger.debug("Emitting %s", intent)
        return intent

    def pointer_leave(self) -> Optional[Intent]:
        """Leaving the axis cancels a drag and finishes a resize."""
        intent: Optional[Intent] = None
        if self.resize.is_active:
            intent = self.resize.pointer_up()
        self.drag.cancel()
        if self.hover is not None:
            self.hover.leave()
        if self._on_process_leave is not None:
            self._on_process_leave()
        return intent

    def click_entry(self, entry_id: int) -> bool:
        """Return ``True`` if the click should open the entry for editing."""
        if self.resize.consume_click():
            return False
        return entry_id in self.intervals

    def wheel(
        self,
        delta_x: float,
        delta_y: float,
        *,
        modifier: bool = False,
        pointer_offset: Optional[float] = None,
    ) -> bool:
        return self.viewport.handle_wheel(
            delta_x, delta_y, modifier=modifier, pointer_offset=pointer_offset
        )

    def display_range(self, entry_id: int) -> Optional[TimeRange]:
        """Range to draw for an entry, showing the live preview while resizing."""
        state = self.resize.state
        if isinstance(state, Resizing) and state.entry_id == entry_id:
            return state.preview
        entry = self.intervals.get(entry_id)
        return entry.range if entry is not None else None

    @property
    def drag_preview(self) -> Optional[TimeRange]:
        return self.drag.preview

    def place_card(
        self, card: HoverCard, card_size: Size, viewport_size: Size, axis_rect: Rect
    ) -> HoverCard:
        """Position ``card`` inside the viewport, off ``axis_rect`` where possible."""
        card.position = self.positioner.place(card.anchor, card_size, viewport_size, axis_rect)
        return card


def create_controller(
    timeline: DayTimeline,
    *,
    on_hover_result: Callable[[datetime, Optional[str]], None],
    on_hover_clear: Callable[[], None],
    container_width: float = 0.0,
    scheduler: Optional[Scheduler] = None,
    layout: Optional[LaneLayout] = None,
    on_process_hover: Optional[Callable[[datetime], None]] = None,
    on_process_leave: Optional[Callable[[], None]] = None,
) -> TimelineController:
    """Wire a controller to ``timeline`` using the persisted zoom level."""
    settings = timeline.settings
    scheduler = scheduler or AsyncioScheduler()
    viewport = AxisViewport(
        timeline.day_start,
        settings=settings,
        visible_hours=get_zoom_preference(timeline.preferences, settings),
        container_width=container_width,
        preferences=timeline.preferences,
    )
    hover = HoverLookupCoordinator(
        timeline.lookup_screenshot,
        scheduler,
        on_result=on_hover_result,
        on_clear=on_hover_clear,
        debounce=settings.hover_debounce,
        fade=settings.hover_fade,
    )
    return TimelineController(
        viewport,
        timeline.intervals,
        scheduler,
        settings=settings,
        layout=layout,
        hover=hover,
        on_process_hover=on_process_hover,
        on_process_leave=on_process_leave,
    )
