"""Mapping between wall-clock time and the zoomable, scrollable pixel axis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .config import TimelineSettings
from .models import DAY, TimeRange
from .preferences import Preferences, set_zoom_preference

logger = logging.getLogger(__name__)

HOURS_IN_DAY = 24
_DAY_MS = 86_400_000


@dataclass(frozen=True, slots=True)
class TimeAxisProjection:
    """Bidirectional time <-> x mapping for one displayed day."""

    day_start: datetime
    axis_width: float

    @classmethod
    def for_container(
        cls,
        day_start: datetime,
        container_width: float,
        visible_hours: int,
        *,
        fallback_width: float = 1200.0,
    ) -> "TimeAxisProjection":
        if container_width <= 0:
            return cls(day_start, fallback_width)
        return cls(day_start, container_width * HOURS_IN_DAY / visible_hours)

    @property
    def day_end(self) -> datetime:
        return self.day_start + DAY

    def time_to_x(self, timestamp: datetime) -> float:
        offset = timestamp - self.day_start
        return offset / DAY * self.axis_width

    def x_to_time(self, x: float) -> datetime:
        clamped = max(0.0, min(x, self.axis_width))
        offset_ms = round(clamped / self.axis_width * _DAY_MS)
        return self.day_start + timedelta(milliseconds=offset_ms)

    def span_to_pixels(self, start: datetime, end: datetime) -> tuple[float, float]:
        """Return ``(x, width)`` for a block, at least one pixel wide."""
        x = self.time_to_x(start)
        return x, max(self.time_to_x(end) - x, 1.0)


class AxisViewport:
    """Scroll offset and zoom level of the axis inside its container.

    ``container_width`` is both the measured width of the container and the
    width of the visible viewport; the axis itself is ``24 / visible_hours``
    times wider and scrolls horizontally.
    """

    def __init__(
        self,
        day_start: datetime,
        *,
        settings: Optional[TimelineSettings] = None,
        visible_hours: Optional[int] = None,
        container_width: float = 0.0,
        preferences: Optional[Preferences] = None,
    ) -> None:
        self.settings = settings or TimelineSettings()
        self.day_start = day_start
        self.container_width = container_width
        self.visible_hours = self.settings.clamp_visible_hours(
            visible_hours if visible_hours is not None else self.settings.default_visible_hours
        )
        self.scroll_offset = 0.0
        self._preferences = preferences

    @property
    def projection(self) -> TimeAxisProjection:
        return TimeAxisProjection.for_container(
            self.day_start,
            self.container_width,
            self.visible_hours,
            fallback_width=self.settings.fallback_axis_width,
        )

    @property
    def axis_width(self) -> float:
        return self.projection.axis_width

    @property
    def max_scroll(self) -> float:
        return max(0.0, self.axis_width - self.container_width)

    def set_day(self, day_start: datetime) -> None:
        self.day_start = day_start

    def resize(self, container_width: float) -> None:
        self.container_width = max(0.0, container_width)
        self.scroll_offset = self._clamp_scroll(self.scroll_offset)

    def visible_range(self) -> TimeRange:
        projection = self.projection
        start = projection.x_to_time(self.scroll_offset)
        end = projection.x_to_time(self.scroll_offset + self.container_width)
        return TimeRange(start, end)

    def zoom_to(self, visible_hours: int, anchor_offset: Optional[float] = None) -> bool:
        """Change the zoom level keeping the instant under ``anchor_offset`` fixed.

        ``anchor_offset`` is measured from the left edge of the viewport and
        defaults to the viewport centre. Returns ``False`` when the clamped
        value equals the current one.
        """
        bounded = self.settings.clamp_visible_hours(visible_hours)
        if bounded == self.visible_hours:
            return False

        if anchor_offset is None:
            anchor_offset = self.container_width / 2
        old_width = self.axis_width
        ratio = (self.scroll_offset + anchor_offset) / old_width if old_width > 0 else 0.0

        self.visible_hours = bounded
        new_width = self.axis_width
        self.scroll_offset = self._clamp_scroll(ratio * new_width - anchor_offset)
        logger.debug("Zoomed to %d visible hours (scroll=%.1f)", bounded, self.scroll_offset)

        if self._preferences is not None:
            set_zoom_preference(self._preferences, bounded, self.settings)
        return True

    def zoom_step(self, direction: int, anchor_offset: Optional[float] = None) -> bool:
        step = 1 if direction > 0 else -1
        return self.zoom_to(self.visible_hours + step, anchor_offset)

    def pan(self, delta: float) -> None:
        self.scroll_offset = self._clamp_scroll(self.scroll_offset + delta)

    def handle_wheel(
        self,
        delta_x: float,
        delta_y: float,
        *,
        modifier: bool = False,
        pointer_offset: Optional[float] = None,
    ) -> bool:
        """Apply a wheel gesture; returns ``True`` when it was consumed.

        With a modifier key held (ctrl/cmd) the gesture zooms by one hour
        anchored at the pointer; otherwise a mostly vertical gesture pans.
        """
        if modifier:
            offset = self.container_width / 2 if pointer_offset is None else pointer_offset
            offset = max(0.0, min(offset, self.container_width))
            self.zoom_step(1 if delta_y > 0 else -1, offset)
            return True
        if abs(delta_y) > abs(delta_x):
            self.pan(delta_y)
            return True
        return False

    def _clamp_scroll(self, value: float) -> float:
        return max(0.0, min(value, self.max_scroll))
