"""
Hit-testing for annotations and resize handles.

point_in_annotation dispatches on the annotation type through a table of
per-type predicates:
- stamps: fixed-size box around the anchor
- highlights: rectangle (two points) or polygon (more points)
- circles: center/radius in either circle mode
- text and sticky notes: their box with a generous margin
- everything else: point bounds widened by the stroke width

Handle hit-testing uses perimeter handles for circles and corner/edge
handles of the two-point box for all other resizable shapes.
"""

import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PySide6.QtCore import QPointF
from PySide6.QtGui import QFont, QFontMetricsF

from pagemark.editor.annotations import (
    CORNER_HANDLES,
    EDGE_HANDLES,
    LINE_TYPES,
    STAMP_HEIGHT,
    STAMP_TYPES,
    STAMP_WIDTH,
    STICKY_NOTE_SIZE,
    Annotation,
    AnnotationType,
    ResizeHandle,
)
from pagemark.editor.geometry import (
    Bounds,
    bounds,
    circle_geometry,
    distance,
    point_in_polygon,
)

# Device pixels, divided by scale
HANDLE_TOLERANCE = 8.0
HIGHLIGHT_PADDING = 4.0
TEXT_SELECTION_PADDING = 20.0
MIN_STROKE_BUFFER = 5.0

# Document units
STAMP_PADDING = 5.0

# Clockwise from angle 0 (screen y grows downward)
CIRCLE_HANDLE_ORDER = (
    ResizeHandle.RIGHT,
    ResizeHandle.BOTTOM_RIGHT,
    ResizeHandle.BOTTOM,
    ResizeHandle.BOTTOM_LEFT,
    ResizeHandle.LEFT,
    ResizeHandle.TOP_LEFT,
    ResizeHandle.TOP,
    ResizeHandle.TOP_RIGHT,
)


# ─── Boxes ────────────────────────────────────────────────────────────────────

def stamp_box(annotation: Annotation) -> Bounds:
    """Stamp rectangle centered on the anchor, sized by stamp_size percent."""
    anchor = annotation.points[0]
    multiplier = (annotation.style.stamp_size or 100) / 100
    half_w = STAMP_WIDTH * multiplier / 2
    half_h = STAMP_HEIGHT * multiplier / 2
    return Bounds(anchor.x() - half_w, anchor.y() - half_h, anchor.x() + half_w, anchor.y() + half_h)


def text_padding(font_size: float) -> float:
    """Inner padding of a text box, growing with the font."""
    return max(10.0, font_size * 0.5)


def measure_text_box(annotation: Annotation) -> Tuple[float, float]:
    """
    Measure the box a text annotation needs for its content.

    Width is the widest line plus horizontal padding, at least 120; height
    is 1.2 line spacing per line plus vertical padding, at least 40.
    """
    options = annotation.style.text_options
    font_size = options.font_size or 14
    font = QFont(options.font_family or "Arial")
    font.setPixelSize(max(1, int(round(font_size))))
    font.setBold(options.bold)
    font.setItalic(options.italic)
    metrics = QFontMetricsF(font)

    lines = (annotation.text or "").split("\n")
    max_width = max(metrics.horizontalAdvance(line) for line in lines)
    padding = text_padding(font_size)
    text_height = font_size * 1.2 * len(lines)

    return (
        max(max_width + padding * 2, 120.0),
        max(text_height + padding * 2, 40.0),
    )


def text_box_size(annotation: Annotation) -> Tuple[float, float]:
    if annotation.width and annotation.height:
        return annotation.width, annotation.height
    if annotation.type == AnnotationType.STICKY_NOTE:
        return STICKY_NOTE_SIZE
    return measure_text_box(annotation)


def text_box(annotation: Annotation) -> Bounds:
    anchor = annotation.points[0]
    width, height = text_box_size(annotation)
    return Bounds.from_rect(anchor.x(), anchor.y(), width, height)


def annotation_box(annotation: Annotation) -> Bounds:
    """
    Visual box of an annotation in document space.

    Differs from the plain point bounds for single-anchor types and for
    circles, whose second point is not a corner.
    """
    if annotation.type in STAMP_TYPES:
        return stamp_box(annotation)
    if annotation.is_text_like:
        return text_box(annotation)
    if annotation.type == AnnotationType.CIRCLE and len(annotation.points) >= 2:
        center, radius = circle_geometry(
            annotation.points[0],
            annotation.points[1],
            annotation.style.circle_diameter_mode,
        )
        return Bounds(center.x() - radius, center.y() - radius, center.x() + radius, center.y() + radius)
    return bounds(annotation.points)


# ─── Point-in-shape ───────────────────────────────────────────────────────────

def _in_stamp(point: QPointF, annotation: Annotation, scale: float) -> bool:
    if not annotation.points:
        return False
    return stamp_box(annotation).expanded(STAMP_PADDING).contains(point)


def _in_highlight(point: QPointF, annotation: Annotation, scale: float) -> bool:
    points = annotation.points
    if len(points) < 2:
        return False
    if len(points) == 2:
        return bounds(points).expanded(HIGHLIGHT_PADDING / scale).contains(point)
    return point_in_polygon(point, points)


def _in_circle(point: QPointF, annotation: Annotation, scale: float) -> bool:
    if len(annotation.points) < 2:
        return False
    center, radius = circle_geometry(
        annotation.points[0],
        annotation.points[1],
        annotation.style.circle_diameter_mode,
    )
    return distance(point, center) <= radius


def _in_text(point: QPointF, annotation: Annotation, scale: float) -> bool:
    if not annotation.points:
        return False
    return text_box(annotation).expanded(TEXT_SELECTION_PADDING / scale).contains(point)


def _in_bounds(point: QPointF, annotation: Annotation, scale: float) -> bool:
    if len(annotation.points) < 2:
        return False
    buffer = max(annotation.style.line_width, MIN_STROKE_BUFFER) / scale
    return bounds(annotation.points).expanded(buffer).contains(point)


_POINT_TESTS: Dict[AnnotationType, Callable[[QPointF, Annotation, float], bool]] = {
    AnnotationType.STAMP: _in_stamp,
    AnnotationType.STAMP_APPROVED: _in_stamp,
    AnnotationType.STAMP_REJECTED: _in_stamp,
    AnnotationType.STAMP_REVISION: _in_stamp,
    AnnotationType.HIGHLIGHT: _in_highlight,
    AnnotationType.CIRCLE: _in_circle,
    AnnotationType.TEXT: _in_text,
    AnnotationType.STICKY_NOTE: _in_text,
}


def point_in_annotation(point: QPointF, annotation: Annotation, scale: float = 1.0) -> bool:
    """
    Test if a document-space point lies on an annotation.

    Args:
        point: The point to test.
        annotation: The annotation to test against.
        scale: Current zoom; pixel tolerances are divided by it.
    """
    test = _POINT_TESTS.get(annotation.type, _in_bounds)
    return test(point, annotation, scale)


def hit_test(
    point: QPointF,
    annotations: Sequence[Annotation],
    scale: float = 1.0,
) -> Optional[Annotation]:
    """Return the topmost annotation containing the point (last painted wins)."""
    for annotation in reversed(annotations):
        if point_in_annotation(point, annotation, scale):
            return annotation
    return None


# ─── Resize Handles ───────────────────────────────────────────────────────────

def circle_handle_positions(annotation: Annotation) -> List[Tuple[ResizeHandle, QPointF]]:
    """Eight handles on the perimeter at 45 degree steps starting at angle 0."""
    center, radius = circle_geometry(
        annotation.points[0],
        annotation.points[1],
        annotation.style.circle_diameter_mode,
    )
    handles = []
    for i, handle in enumerate(CIRCLE_HANDLE_ORDER):
        angle = i * math.pi / 4
        handles.append((handle, QPointF(
            center.x() + math.cos(angle) * radius,
            center.y() + math.sin(angle) * radius,
        )))
    return handles


def box_handle_positions(annotation: Annotation) -> List[Tuple[ResizeHandle, QPointF]]:
    """
    Corner handles, then edge handles, of the box spanned by the first two
    points. Lines and arrows only get corners.
    """
    box = bounds(annotation.points[:2])
    mid_x = (box.left + box.right) / 2
    mid_y = (box.top + box.bottom) / 2
    positions = {
        ResizeHandle.TOP_LEFT: QPointF(box.left, box.top),
        ResizeHandle.TOP_RIGHT: QPointF(box.right, box.top),
        ResizeHandle.BOTTOM_LEFT: QPointF(box.left, box.bottom),
        ResizeHandle.BOTTOM_RIGHT: QPointF(box.right, box.bottom),
        ResizeHandle.LEFT: QPointF(box.left, mid_y),
        ResizeHandle.RIGHT: QPointF(box.right, mid_y),
        ResizeHandle.TOP: QPointF(mid_x, box.top),
        ResizeHandle.BOTTOM: QPointF(mid_x, box.bottom),
    }
    order = CORNER_HANDLES if annotation.type in LINE_TYPES else CORNER_HANDLES + EDGE_HANDLES
    return [(handle, positions[handle]) for handle in order]


def has_handles(annotation: Annotation) -> bool:
    """Whether an annotation shows and accepts resize handles."""
    if len(annotation.points) < 2:
        return False
    if annotation.type == AnnotationType.FREEHAND or annotation.type in STAMP_TYPES:
        return False
    if annotation.is_text_like:
        return False
    if annotation.type == AnnotationType.HIGHLIGHT and len(annotation.points) != 2:
        return False
    return True


def handle_positions(annotation: Annotation) -> List[Tuple[ResizeHandle, QPointF]]:
    if not has_handles(annotation):
        return []
    if annotation.type == AnnotationType.CIRCLE:
        return circle_handle_positions(annotation)
    return box_handle_positions(annotation)


def hit_resize_handle(
    point: QPointF,
    annotation: Annotation,
    scale: float = 1.0,
    tolerance: float = HANDLE_TOLERANCE,
) -> Optional[ResizeHandle]:
    """
    Find the resize handle under a point.

    Args:
        point: Document-space point.
        annotation: The (selected) annotation whose handles are tested.
        scale: Current zoom scale.
        tolerance: Handle reach in device pixels on each axis.

    Returns:
        The handle hit, or None.
    """
    reach = tolerance / scale
    for handle, position in handle_positions(annotation):
        if abs(point.x() - position.x()) <= reach and abs(point.y() - position.y()) <= reach:
            return handle
    return None
