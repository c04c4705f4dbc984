"""Domain models for time entries and sampled activity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Half-open ``[start, end)`` span of wall-clock time."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start

    def clip(self, start: datetime, end: datetime) -> Optional["TimeRange"]:
        """Return the part of this range inside ``[start, end)``, if any."""
        clipped_start = max(self.start, start)
        clipped_end = min(self.end, end)
        if clipped_end <= clipped_start:
            return None
        return TimeRange(clipped_start, clipped_end)


@dataclass(slots=True)
class TimeEntry:
    """A labelled block of time owned by the entry store."""

    id: int
    start_time: datetime
    end_time: datetime
    label: str
    category_id: Optional[int] = None
    color: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)


@dataclass(frozen=True, slots=True)
class ProcessSample:
    """Foreground process observed at a single instant."""

    timestamp: datetime
    process_name: str


@dataclass(frozen=True, slots=True)
class ProcessRun:
    """A gap between time entries summarised by its dominant process."""

    start_time: datetime
    end_time: datetime
    process_name: str
    color: str

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)


@dataclass(frozen=True, slots=True)
class Category:
    id: int
    name: str
    color: str


DAY = timedelta(days=1)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)
