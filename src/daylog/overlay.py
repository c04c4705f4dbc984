"""Placement of the hover card so it stays on screen and off the axis."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersection_area(self, other: "Rect") -> float:
        overlap_x = min(self.right, other.right) - max(self.x, other.x)
        overlap_y = min(self.bottom, other.bottom) - max(self.y, other.y)
        if overlap_x <= 0 or overlap_y <= 0:
            return 0.0
        return overlap_x * overlap_y

    def distance_to(self, point: Point) -> float:
        dx = max(self.x - point.x, 0.0, point.x - self.right)
        dy = max(self.y - point.y, 0.0, point.y - self.bottom)
        return math.hypot(dx, dy)


class HoverCardPositioner:
    """Choose where to draw the hover card.

    Candidates are the default offset from the anchor and the four sides of
    the protected rectangle. Each is clamped into the viewport; the first
    candidate with no overlap closest to the anchor wins, otherwise the one
    with the smallest overlap.
    """

    def __init__(self, margin: float = 8.0, offset: float = 12.0) -> None:
        self.margin = margin
        self.offset = offset

    def place(
        self,
        anchor: Point,
        card_size: Size,
        viewport_size: Size,
        protected: Rect,
    ) -> Rect:
        scored: list[tuple[tuple[float, float, int], Rect]] = []
        for order, candidate in enumerate(self._candidates(anchor, card_size, protected)):
            rect = self._clamp(candidate, card_size, viewport_size)
            score = (rect.intersection_area(protected), rect.distance_to(anchor), order)
            scored.append((score, rect))
        return min(scored, key=lambda item: item[0])[1]

    def _candidates(self, anchor: Point, card: Size, protected: Rect) -> list[Point]:
        gap = self.offset
        return [
            Point(anchor.x + gap, anchor.y + gap),
            Point(anchor.x + gap, protected.y - card.height - gap),
            Point(anchor.x + gap, protected.bottom + gap),
            Point(protected.x - card.width - gap, anchor.y + gap),
            Point(protected.right + gap, anchor.y + gap),
        ]

    def _clamp(self, origin: Point, card: Size, viewport: Size) -> Rect:
        max_x = viewport.width - card.width - self.margin
        max_y = viewport.height - card.height - self.margin
        x = max(self.margin, min(origin.x, max_x))
        y = max(self.margin, min(origin.y, max_y))
        return Rect(x, y, card.width, card.height)
