"""Configuration models and helpers for the timeline engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TimelineSettings:
    """Tunable constants for the axis, interactions and hover lookups."""

    min_visible_hours: int = 4
    max_visible_hours: int = 24
    default_visible_hours: int = 24
    min_entry_duration: timedelta = timedelta(minutes=1)
    hover_debounce: timedelta = timedelta(milliseconds=120)
    hover_fade: timedelta = timedelta(milliseconds=500)
    timer_growth_interval: timedelta = timedelta(seconds=3)
    timer_placeholder: timedelta = timedelta(seconds=1)
    poll_interval: timedelta = timedelta(seconds=5)
    last_sample_fill: timedelta = timedelta(seconds=1)
    top_process_limit: int = 3
    screenshot_tolerance: timedelta = timedelta(minutes=5)
    card_margin: float = 8.0
    card_offset: float = 12.0
    fallback_axis_width: float = 1200.0

    @classmethod
    def from_values(
        cls,
        min_entry_seconds: float = 60.0,
        hover_debounce_ms: float = 120.0,
        hover_fade_ms: float = 500.0,
        poll_seconds: float | None = None,
        timer_growth_seconds: float | None = None,
    ) -> "TimelineSettings":
        poll = poll_seconds if poll_seconds is not None else 5.0
        growth = timer_growth_seconds if timer_growth_seconds is not None else 3.0
        return cls(
            min_entry_duration=timedelta(seconds=min_entry_seconds),
            hover_debounce=timedelta(milliseconds=hover_debounce_ms),
            hover_fade=timedelta(milliseconds=hover_fade_ms),
            poll_interval=timedelta(seconds=poll),
            timer_growth_interval=timedelta(seconds=growth),
        )

    def clamp_visible_hours(self, value: float) -> int:
        return max(self.min_visible_hours, min(self.max_visible_hours, int(round(value))))
