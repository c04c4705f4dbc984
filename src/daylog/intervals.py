"""Non-overlapping interval sets and free-gap computation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, Optional

from .models import DAY, TimeEntry, TimeRange


@dataclass(frozen=True, slots=True)
class NeighborBounds:
    """End of the preceding entry and start of the following one."""

    previous_end: datetime
    next_start: datetime


def ranges_overlap(first: TimeRange, second: TimeRange) -> bool:
    return first.start < second.end and first.end > second.start


def gaps_within(
    window_start: datetime,
    window_end: datetime,
    occupied: Iterable[TimeRange],
) -> list[TimeRange]:
    """Return the free sub-ranges of ``[window_start, window_end)``, in order."""
    if window_end <= window_start:
        return []

    clipped: list[TimeRange] = []
    for item in occupied:
        part = item.clip(window_start, window_end)
        if part is not None:
            clipped.append(part)
    clipped.sort(key=lambda item: (item.start, item.end))

    gaps: list[TimeRange] = []
    cursor = window_start
    for item in clipped:
        if item.start > cursor:
            gaps.append(TimeRange(cursor, item.start))
        cursor = max(cursor, item.end)
    if cursor < window_end:
        gaps.append(TimeRange(cursor, window_end))
    return gaps


def find_gap_containing_point(
    point: datetime,
    range_start: datetime,
    range_end: datetime,
    occupied: Iterable[TimeRange],
) -> Optional[TimeRange]:
    """Return the free gap around ``point``, or ``None`` if it is occupied."""
    occupied = list(occupied)
    if any(item.contains(point) for item in occupied):
        return None
    for gap in gaps_within(range_start, range_end, occupied):
        if gap.contains(point):
            return gap
    return None


class IntervalSet:
    """Read-mostly projection of one day's time entries.

    Entries are ordered by ``(start_time, id)`` so that neighbour lookups are
    deterministic even if two entries share a start instant.
    """

    def __init__(self, day_start: datetime, entries: Iterable[TimeEntry] = ()) -> None:
        self.day_start = day_start
        self._entries: list[TimeEntry] = []
        self._index: dict[int, int] = {}
        self.reset(day_start, entries)

    @property
    def day_end(self) -> datetime:
        return self.day_start + DAY

    @property
    def entries(self) -> tuple[TimeEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TimeEntry]:
        return iter(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._index

    def reset(self, day_start: datetime, entries: Iterable[TimeEntry]) -> None:
        """Replace the contents with the store's authoritative entries."""
        self.day_start = day_start
        self._entries = sorted(entries, key=lambda entry: (entry.start_time, entry.id))
        self._index = {entry.id: position for position, entry in enumerate(self._entries)}

    def get(self, entry_id: int) -> Optional[TimeEntry]:
        position = self._index.get(entry_id)
        return None if position is None else self._entries[position]

    def neighbor_bounds_of(self, entry_id: int) -> NeighborBounds:
        position = self._index.get(entry_id)
        if position is None:
            raise KeyError(f"No entry with id={entry_id} in this interval set")
        previous_end = (
            self._entries[position - 1].end_time if position > 0 else self.day_start
        )
        next_start = (
            self._entries[position + 1].start_time
            if position < len(self._entries) - 1
            else self.day_end
        )
        return NeighborBounds(previous_end=previous_end, next_start=next_start)

    def entry_at(self, instant: datetime) -> Optional[TimeEntry]:
        for entry in self._entries:
            if entry.start_time > instant:
                break
            if entry.range.contains(instant):
                return entry
        return None

    def occupied_ranges(self) -> list[TimeRange]:
        return [entry.range for entry in self._entries]

    def overlaps(
        self, start: datetime, end: datetime, *, exclude_id: Optional[int] = None
    ) -> bool:
        candidate = TimeRange(start, end)
        return any(
            ranges_overlap(candidate, entry.range)
            for entry in self._entries
            if entry.id != exclude_id
        )

    def gaps(
        self, window_start: Optional[datetime] = None, window_end: Optional[datetime] = None
    ) -> list[TimeRange]:
        return gaps_within(
            window_start or self.day_start,
            window_end or self.day_end,
            self.occupied_ranges(),
        )

    def gap_containing(self, point: datetime) -> Optional[TimeRange]:
        return find_gap_containing_point(
            point, self.day_start, self.day_end, self.occupied_ranges()
        )

    def is_consistent(self) -> bool:
        """``True`` when every entry is non-empty and no two overlap."""
        for position, entry in enumerate(self._entries):
            if entry.end_time <= entry.start_time:
                return False
            if position and self._entries[position - 1].end_time > entry.start_time:
                return False
        return True
