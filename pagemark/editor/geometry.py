"""
Geometry primitives for the annotation engine.

Stateless helpers shared by hit-testing, selection and rendering:
- Bounds: axis-aligned box over a set of points
- Distance and midpoint
- Parametric segment intersection
- Ray-cast point-in-polygon
- Circle, triangle and star construction from a two-point diagonal

All coordinates are document space (QPointF), independent of zoom.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from PySide6.QtCore import QPointF, QRectF


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned box. Edges are inclusive."""
    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_corners(cls, a: QPointF, b: QPointF) -> "Bounds":
        return cls(
            min(a.x(), b.x()),
            min(a.y(), b.y()),
            max(a.x(), b.x()),
            max(a.y(), b.y()),
        )

    @classmethod
    def from_rect(cls, x: float, y: float, width: float, height: float) -> "Bounds":
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> QPointF:
        return QPointF(
            self.left + self.width / 2,
            self.top + self.height / 2,
        )

    def corners(self) -> List[QPointF]:
        """Top-left, top-right, bottom-left, bottom-right."""
        return [
            QPointF(self.left, self.top),
            QPointF(self.right, self.top),
            QPointF(self.left, self.bottom),
            QPointF(self.right, self.bottom),
        ]

    def edges(self) -> List[Tuple[QPointF, QPointF]]:
        """Top, right, bottom and left edges as segments."""
        tl, tr, bl, br = self.corners()
        return [(tl, tr), (tr, br), (bl, br), (tl, bl)]

    def contains(self, point: QPointF) -> bool:
        return (
            self.left <= point.x() <= self.right
            and self.top <= point.y() <= self.bottom
        )

    def contains_bounds(self, other: "Bounds") -> bool:
        return (
            other.left >= self.left
            and other.right <= self.right
            and other.top >= self.top
            and other.bottom <= self.bottom
        )

    def expanded(self, margin: float) -> "Bounds":
        return Bounds(
            self.left - margin,
            self.top - margin,
            self.right + margin,
            self.bottom + margin,
        )

    def translated(self, dx: float, dy: float) -> "Bounds":
        return Bounds(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)

    def to_rect(self) -> QRectF:
        return QRectF(self.left, self.top, self.width, self.height)


def bounds(points: Iterable[QPointF]) -> Bounds:
    """
    Compute the axis-aligned bounds of a set of points.

    Raises:
        ValueError: If no points are given.
    """
    xs: List[float] = []
    ys: List[float] = []
    for p in points:
        xs.append(p.x())
        ys.append(p.y())
    if not xs:
        raise ValueError("Cannot compute bounds of an empty point list")
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def distance(a: QPointF, b: QPointF) -> float:
    return math.hypot(b.x() - a.x(), b.y() - a.y())


def midpoint(a: QPointF, b: QPointF) -> QPointF:
    return QPointF((a.x() + b.x()) / 2, (a.y() + b.y()) / 2)


def segments_intersect(p1: QPointF, p2: QPointF, p3: QPointF, p4: QPointF) -> bool:
    """
    Test whether segment p1-p2 crosses segment p3-p4.

    Uses the parametric form with ua, ub in [0, 1]. Parallel and collinear
    segments give a zero denominator and are reported as not intersecting,
    even when collinear segments overlap.
    """
    denominator = (
        (p4.y() - p3.y()) * (p2.x() - p1.x())
        - (p4.x() - p3.x()) * (p2.y() - p1.y())
    )
    if denominator == 0:
        return False

    ua = (
        (p4.x() - p3.x()) * (p1.y() - p3.y())
        - (p4.y() - p3.y()) * (p1.x() - p3.x())
    ) / denominator
    ub = (
        (p2.x() - p1.x()) * (p1.y() - p3.y())
        - (p2.y() - p1.y()) * (p1.x() - p3.x())
    ) / denominator

    return 0 <= ua <= 1 and 0 <= ub <= 1


def point_in_polygon(point: QPointF, polygon: Sequence[QPointF]) -> bool:
    """Even-odd ray casting test."""
    inside = False
    x, y = point.x(), point.y()
    count = len(polygon)
    j = count - 1
    for i in range(count):
        xi, yi = polygon[i].x(), polygon[i].y()
        xj, yj = polygon[j].x(), polygon[j].y()
        if (yi > y) != (yj > y):
            cross_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < cross_x:
                inside = not inside
        j = i
    return inside


def circle_geometry(p1: QPointF, p2: QPointF, diameter_mode: bool) -> Tuple[QPointF, float]:
    """
    Center and radius of a circle defined by two points.

    In diameter mode the points are the ends of a diameter; otherwise p1 is
    the center and p2 lies on the perimeter.
    """
    if diameter_mode:
        return midpoint(p1, p2), distance(p1, p2) / 2
    return QPointF(p1), distance(p1, p2)


def triangle_points(box: Bounds) -> List[QPointF]:
    """Apex at top center, base along the bottom edge."""
    center_x = box.left + box.width / 2
    return [
        QPointF(center_x, box.top),
        QPointF(box.left, box.bottom),
        QPointF(box.right, box.bottom),
    ]


def star_points(box: Bounds, spikes: int = 5, inner_ratio: float = 0.4) -> List[QPointF]:
    """
    Vertices of a star inscribed in the shorter side of a box, first spike
    pointing up.
    """
    center = box.center
    outer = min(box.width, box.height) / 2
    inner = outer * inner_ratio
    result = []
    for i in range(spikes * 2):
        radius = outer if i % 2 == 0 else inner
        angle = i * math.pi / spikes - math.pi / 2
        result.append(QPointF(
            center.x() + math.cos(angle) * radius,
            center.y() + math.sin(angle) * radius,
        ))
    return result
