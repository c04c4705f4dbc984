"""Hover card placement around the protected axis."""

from __future__ import annotations

from daylog.overlay import HoverCardPositioner, Point, Rect, Size


def test_default_offset_wins_when_clear() -> None:
    positioner = HoverCardPositioner()
    placed = positioner.place(
        Point(100, 300), Size(200, 100), Size(1000, 700), Rect(0, 0, 1000, 100)
    )
    assert placed == Rect(112, 312, 200, 100)


def test_moves_above_the_axis_when_default_overlaps() -> None:
    positioner = HoverCardPositioner()
    placed = positioner.place(
        Point(500, 250), Size(200, 100), Size(1000, 600), Rect(0, 200, 1000, 120)
    )
    assert placed == Rect(512, 88, 200, 100)
    assert placed.intersection_area(Rect(0, 200, 1000, 120)) == 0


def test_card_is_clamped_inside_viewport() -> None:
    positioner = HoverCardPositioner(margin=8)
    placed = positioner.place(
        Point(990, 500), Size(200, 100), Size(1000, 700), Rect(0, 0, 1000, 100)
    )
    assert placed == Rect(792, 512, 200, 100)
    assert placed.right <= 1000 - 8


def test_least_overlap_when_nothing_fits() -> None:
    positioner = HoverCardPositioner()
    viewport = Size(300, 200)
    protected = Rect(0, 50, 300, 100)
    placed = positioner.place(Point(150, 100), Size(100, 80), viewport, protected)

    assert placed == Rect(162, 112, 100, 80)
    assert placed.x >= 8 and placed.bottom <= viewport.height - 8
    assert placed.intersection_area(protected) == 38 * 100
