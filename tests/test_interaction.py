"""Drag-to-create and edge-resize state machines."""

from __future__ import annotations

from datetime import timedelta

import pytest

from daylog.interaction import (
    Dragging,
    DragSelectionController,
    Idle,
    ProposeCreate,
    ProposeUpdateRange,
    ResizeController,
    ResizeEdge,
)
from daylog.intervals import IntervalSet

from tests.conftest import DAY_START, FakeScheduler, at, entry


@pytest.fixture()
def intervals() -> IntervalSet:
    return IntervalSet(DAY_START, [entry(1, at(9), at(10), "A"), entry(2, at(14), at(15, 30), "B")])


@pytest.fixture()
def resize(intervals: IntervalSet, scheduler: FakeScheduler) -> ResizeController:
    return ResizeController(intervals, scheduler)


def test_drag_emits_normalised_range() -> None:
    drag = DragSelectionController()
    drag.pointer_down(at(11, 30))
    assert isinstance(drag.state, Dragging)
    drag.pointer_move(at(11))

    assert drag.pointer_up() == ProposeCreate(start=at(11), end=at(11, 30))
    assert isinstance(drag.state, Idle)


def test_drag_at_threshold_is_discarded() -> None:
    drag = DragSelectionController()
    drag.pointer_down(at(11))
    drag.pointer_move(at(11, 1))
    assert drag.pointer_up() is None

    drag.pointer_down(at(11))
    drag.pointer_move(at(11, 1) + timedelta(milliseconds=1))
    assert drag.pointer_up() is not None


def test_cancelled_drag_emits_nothing() -> None:
    drag = DragSelectionController()
    drag.pointer_down(at(11))
    drag.pointer_move(at(13))
    drag.cancel()
    assert drag.pointer_up() is None
    assert drag.preview is None


def test_resize_start_clamps_at_previous_end(resize: ResizeController) -> None:
    assert resize.begin(2, ResizeEdge.START)
    assert resize.pointer_move(at(9, 30)) == at(10)
    assert resize.state.preview_start == at(10)
    resize.pointer_move(at(3))
    assert resize.state.preview_start == at(10)

    assert resize.pointer_up() == ProposeUpdateRange(entry_id=2, start=at(10), end=at(15, 30))


def test_resize_end_respects_minimum_duration(resize: ResizeController) -> None:
    assert resize.begin(1, "end")
    resize.pointer_move(at(8))
    assert resize.state.preview_end == at(9, 1)
    resize.pointer_move(at(23))
    assert resize.state.preview_end == at(14)

    intent = resize.pointer_up()
    assert intent.start == at(9)
    assert intent.end == at(14)


def test_unchanged_resize_emits_nothing(resize: ResizeController) -> None:
    resize.begin(1, ResizeEdge.END)
    resize.pointer_move(at(10))
    assert resize.pointer_up() is None


def test_resize_refused_without_room(scheduler: FakeScheduler) -> None:
    intervals = IntervalSet(
        DAY_START, [entry(1, at(9), at(9, 1)), entry(2, at(9, 1), at(9, 30))]
    )
    resize = ResizeController(intervals, scheduler)

    assert not resize.begin(1, ResizeEdge.END)
    assert isinstance(resize.state, Idle)
    assert resize.begin(1, ResizeEdge.START)


def test_resize_refused_for_minimum_length_entry(scheduler: FakeScheduler) -> None:
    intervals = IntervalSet(DAY_START, [entry(1, at(9), at(9, 1)), entry(2, at(9, 1), at(9, 2))])
    resize = ResizeController(intervals, scheduler)

    assert not resize.begin(2, ResizeEdge.START)
    assert isinstance(resize.state, Idle)
    assert not resize.suppress_click


def test_click_suppressed_until_next_tick(
    resize: ResizeController, scheduler: FakeScheduler
) -> None:
    resize.begin(2, ResizeEdge.END)
    resize.pointer_move(at(16))
    resize.pointer_up()
    assert resize.suppress_click

    scheduler.advance()
    assert not resize.consume_click()


def test_click_during_same_tick_is_consumed_once(resize: ResizeController) -> None:
    resize.begin(2, ResizeEdge.END)
    resize.pointer_up()
    assert resize.consume_click()
    assert not resize.consume_click()


def test_emitted_range_stays_inside_boundaries(resize: ResizeController) -> None:
    resize.begin(2, ResizeEdge.END)
    state = resize.state
    for minute in range(0, 24 * 60, 37):
        resize.pointer_move(DAY_START + timedelta(minutes=minute))
    intent = resize.pointer_up()
    assert state.min_boundary <= intent.end <= state.max_boundary
    assert intent.start < intent.end
