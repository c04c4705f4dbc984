"""Neighbour bounds, overlap checks and gap finding."""

from __future__ import annotations

from datetime import timedelta

import pytest

from daylog.intervals import IntervalSet, find_gap_containing_point, gaps_within
from daylog.models import TimeRange

from tests.conftest import DAY_START, at, entry

DAY_END = DAY_START + timedelta(days=1)


@pytest.fixture()
def day() -> IntervalSet:
    return IntervalSet(DAY_START, [entry(2, at(14), at(15, 30), "B"), entry(1, at(9), at(10), "A")])


def test_neighbor_bounds_use_day_edges(day: IntervalSet) -> None:
    bounds = day.neighbor_bounds_of(1)
    assert bounds.previous_end == DAY_START
    assert bounds.next_start == at(14)

    bounds = day.neighbor_bounds_of(2)
    assert bounds.previous_end == at(10)
    assert bounds.next_start == DAY_END


def test_neighbor_bounds_of_unknown_entry_raises(day: IntervalSet) -> None:
    with pytest.raises(KeyError):
        day.neighbor_bounds_of(99)


def test_gaps_for_whole_day(day: IntervalSet) -> None:
    assert day.gaps() == [
        TimeRange(DAY_START, at(9)),
        TimeRange(at(10), at(14)),
        TimeRange(at(15, 30), DAY_END),
    ]


def test_gaps_partition_the_window() -> None:
    occupied = [
        TimeRange(at(8), at(9)),
        TimeRange(at(8, 30), at(11)),
        TimeRange(at(13), at(13, 15)),
        TimeRange(at(6), at(7)),
    ]
    window_start, window_end = at(7, 30), at(14)
    gaps = gaps_within(window_start, window_end, occupied)

    for first, second in zip(gaps, gaps[1:]):
        assert first.end <= second.start
    free = sum((gap.duration for gap in gaps), timedelta(0))
    # occupied time inside the window: 08:00-11:00 and 13:00-13:15
    assert free + timedelta(hours=3, minutes=15) == window_end - window_start


def test_gaps_of_empty_window_is_empty() -> None:
    assert gaps_within(at(10), at(10), []) == []


def test_gap_containing_point(day: IntervalSet) -> None:
    assert day.gap_containing(at(12)) == TimeRange(at(10), at(14))
    assert day.gap_containing(at(9, 30)) is None


def test_point_outside_range_has_no_gap() -> None:
    assert find_gap_containing_point(at(20), at(8), at(12), []) is None


def test_overlaps_respects_exclusion(day: IntervalSet) -> None:
    assert day.overlaps(at(9, 30), at(11))
    assert not day.overlaps(at(10), at(14))
    assert not day.overlaps(at(8), at(10, 30), exclude_id=1)


def test_equal_starts_are_ordered_by_id() -> None:
    intervals = IntervalSet(DAY_START, [entry(7, at(9), at(9)), entry(3, at(9), at(10))])
    assert [item.id for item in intervals] == [3, 7]
    assert not intervals.is_consistent()


def test_entry_at_and_reset(day: IntervalSet) -> None:
    assert day.entry_at(at(14, 59)).label == "B"
    assert day.entry_at(at(15, 30)) is None

    day.reset(DAY_START + timedelta(days=1), [])
    assert len(day) == 0
    assert 1 not in day
    assert day.gaps() == [TimeRange(DAY_END, DAY_END + timedelta(days=1))]
