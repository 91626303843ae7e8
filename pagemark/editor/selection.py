"""
Selection and resize management.

Provides:
- SelectionManager: the ordered, id-unique set of selected annotations
- Rubber-band membership rules per annotation type
- Resize geometry: which handles are valid and the new points for a drag
- Translation of a multi-selection by one shared delta
"""

from typing import Iterable, List, Optional, Sequence

from PySide6.QtCore import QPointF

from pagemark.editor.annotations import (
    STAMP_TYPES,
    Annotation,
    AnnotationType,
    ResizeHandle,
)
from pagemark.editor.geometry import (
    Bounds,
    bounds,
    circle_geometry,
    distance,
    midpoint,
    segments_intersect,
)
from pagemark.editor.hit_testing import (
    annotation_box,
    circle_handle_positions,
    handle_positions,
    stamp_box,
)

DEFAULT_MIN_SIZE = 10.0


class SelectionManager:
    """
    Ordered set of selected annotations.

    Membership is by annotation id; the stored objects are the engine's
    current instances and are swapped through replace() or resync() when
    the engine gets fresh copies.
    """

    def __init__(self) -> None:
        self._items: List[Annotation] = []

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self):
        return iter(list(self._items))

    @property
    def annotations(self) -> List[Annotation]:
        return list(self._items)

    @property
    def ids(self) -> List[str]:
        return [a.id for a in self._items]

    @property
    def single(self) -> Optional[Annotation]:
        """The selected annotation when exactly one is selected."""
        return self._items[0] if len(self._items) == 1 else None

    def contains(self, annotation: Annotation) -> bool:
        return any(a.id == annotation.id for a in self._items)

    def select(self, annotation: Optional[Annotation], add: bool = False) -> None:
        """
        Select an annotation.

        Args:
            annotation: Annotation to select, or None to clear.
            add: Keep the current selection and append to it.
        """
        if annotation is None:
            self.clear()
            return
        if not add:
            self._items = [annotation]
        elif not self.contains(annotation):
            self._items.append(annotation)

    def set(self, annotations: Iterable[Annotation]) -> None:
        self._items = []
        for annotation in annotations:
            if not self.contains(annotation):
                self._items.append(annotation)

    def clear(self) -> None:
        self._items = []

    def remove(self, annotation_id: str) -> None:
        self._items = [a for a in self._items if a.id != annotation_id]

    def replace(self, annotation: Annotation) -> None:
        """Swap in a new instance of an already selected annotation."""
        self._items = [annotation if a.id == annotation.id else a for a in self._items]

    def resync(self, annotations: Sequence[Annotation]) -> None:
        """Point the selection at the given instances, dropping vanished ids."""
        by_id = {a.id: a for a in annotations}
        self._items = [by_id[a.id] for a in self._items if a.id in by_id]


# ─── Rubber Band ──────────────────────────────────────────────────────────────

def in_selection_box(annotation: Annotation, start: QPointF, end: QPointF) -> bool:
    """
    Decide whether a rubber band from start to end selects an annotation.

    Text and sticky notes need their box center inside the band, stamps
    need their whole box inside, and other shapes need a box corner inside
    or a box edge crossing a band edge. All bounds are inclusive.
    """
    if not annotation.points:
        return False

    band = Bounds.from_corners(start, end)

    if annotation.is_text_like:
        return band.contains(annotation_box(annotation).center)

    if annotation.type in STAMP_TYPES:
        return band.contains_bounds(stamp_box(annotation))

    box = annotation_box(annotation)
    if any(band.contains(corner) for corner in box.corners()):
        return True

    return any(
        segments_intersect(edge[0], edge[1], band_edge[0], band_edge[1])
        for edge in box.edges()
        for band_edge in band.edges()
    )


def annotations_in_box(
    annotations: Sequence[Annotation],
    start: QPointF,
    end: QPointF,
) -> List[Annotation]:
    return [a for a in annotations if in_selection_box(a, start, end)]


# ─── Resize ───────────────────────────────────────────────────────────────────

# Which box edges each handle drags: (left, top, right, bottom)
_HANDLE_EDGES = {
    ResizeHandle.TOP_LEFT: (True, True, False, False),
    ResizeHandle.TOP: (False, True, False, False),
    ResizeHandle.TOP_RIGHT: (False, True, True, False),
    ResizeHandle.RIGHT: (False, False, True, False),
    ResizeHandle.BOTTOM_RIGHT: (False, False, True, True),
    ResizeHandle.BOTTOM: (False, False, False, True),
    ResizeHandle.BOTTOM_LEFT: (True, False, False, True),
    ResizeHandle.LEFT: (True, False, False, False),
}


def valid_handles(annotation: Annotation) -> List[ResizeHandle]:
    return [handle for handle, _ in handle_positions(annotation)]


def is_valid_resize(annotation: Annotation, handle: Optional[ResizeHandle]) -> bool:
    """A resize is valid when the handle exists on the annotation's current shape."""
    return handle is not None and handle in valid_handles(annotation)


def _place(first: float, second: float, low: float, high: float):
    # Keep which point sat on the low side
    if first <= second:
        return low, high
    return high, low


def _resize_box(
    points: List[QPointF],
    handle: ResizeHandle,
    point: QPointF,
    min_size: float,
) -> List[QPointF]:
    p0, p1 = points[0], points[1]
    box = bounds([p0, p1])
    moves_left, moves_top, moves_right, moves_bottom = _HANDLE_EDGES[handle]

    left, top, right, bottom = box.left, box.top, box.right, box.bottom
    if moves_left:
        left = min(point.x(), right - min_size)
    if moves_right:
        right = max(point.x(), left + min_size)
    if moves_top:
        top = min(point.y(), bottom - min_size)
    if moves_bottom:
        bottom = max(point.y(), top + min_size)

    x0, x1 = _place(p0.x(), p1.x(), left, right)
    y0, y1 = _place(p0.y(), p1.y(), top, bottom)
    return [QPointF(x0, y0), QPointF(x1, y1)] + [QPointF(p) for p in points[2:]]


def _scaled_about(center: QPointF, p: QPointF, factor: float) -> QPointF:
    return QPointF(
        center.x() + (p.x() - center.x()) * factor,
        center.y() + (p.y() - center.y()) * factor,
    )


def _resize_circle(
    annotation: Annotation,
    handle: ResizeHandle,
    point: QPointF,
    uniform: bool,
    min_size: float,
) -> List[QPointF]:
    p0, p1 = annotation.points[0], annotation.points[1]
    diameter_mode = annotation.style.circle_diameter_mode
    center, radius = circle_geometry(p0, p1, diameter_mode)
    min_radius = min_size / 2

    if uniform:
        new_radius = max(distance(point, center), min_radius)
        if radius == 0:
            if diameter_mode:
                return [
                    QPointF(center.x() - new_radius, center.y()),
                    QPointF(center.x() + new_radius, center.y()),
                ]
            return [QPointF(center), QPointF(center.x() + new_radius, center.y())]
        factor = new_radius / radius
        if diameter_mode:
            return [_scaled_about(center, p0, factor), _scaled_about(center, p1, factor)]
        return [QPointF(center), _scaled_about(center, p1, factor)]

    # Opposite perimeter handle stays put; the pointer becomes the other
    # end of the diameter.
    positions = dict(circle_handle_positions(annotation))
    dragged = positions[handle]
    anchor = QPointF(2 * center.x() - dragged.x(), 2 * center.y() - dragged.y())

    span = distance(anchor, point)
    if span < min_size:
        if span > 0:
            direction = QPointF((point.x() - anchor.x()) / span, (point.y() - anchor.y()) / span)
        elif radius > 0:
            direction = QPointF(
                (dragged.x() - center.x()) / radius,
                (dragged.y() - center.y()) / radius,
            )
        else:
            direction = QPointF(1, 0)
        point = QPointF(anchor.x() + direction.x() * min_size, anchor.y() + direction.y() * min_size)

    if diameter_mode:
        return [QPointF(anchor), QPointF(point)]
    return [midpoint(anchor, point), QPointF(point)]


def resized_points(
    annotation: Annotation,
    handle: ResizeHandle,
    point: QPointF,
    uniform: bool = False,
    min_size: float = DEFAULT_MIN_SIZE,
) -> List[QPointF]:
    """
    Compute the points of an annotation after dragging a handle to a point.

    Args:
        annotation: The annotation being resized (not modified).
        handle: The dragged handle.
        point: Current pointer position in document space.
        uniform: Scale a circle about its center. Ignored by other types.
        min_size: Smallest width, height or diameter the resize allows.

    Returns:
        The new point list, or a copy of the current points when the handle
        is not valid for the annotation.
    """
    if not is_valid_resize(annotation, handle):
        return [QPointF(p) for p in annotation.points]
    if annotation.type == AnnotationType.CIRCLE:
        return _resize_circle(annotation, handle, point, uniform, min_size)
    return _resize_box(annotation.points, handle, point, min_size)


# ─── Move ─────────────────────────────────────────────────────────────────────

def translate_all(annotations: Iterable[Annotation], dx: float, dy: float) -> None:
    """Apply one delta to every point of every annotation."""
    for annotation in annotations:
        annotation.translate(dx, dy)
