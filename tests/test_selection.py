"""
Tests for selection, rubber-band membership and resize geometry.
"""
import pytest
from PySide6.QtCore import QPointF

from pagemark.editor.annotations import AnnotationStyle, AnnotationType, ResizeHandle
from pagemark.editor.geometry import Bounds, bounds, circle_geometry
from pagemark.editor.selection import (
    SelectionManager,
    annotations_in_box,
    in_selection_box,
    is_valid_resize,
    resized_points,
    translate_all,
)
from builders import make_annotation, rectangle


class TestSelectionManager:

    def test_select_replaces(self):
        a, b = rectangle(0, 0, 1, 1), rectangle(2, 2, 3, 3)
        selection = SelectionManager()
        selection.select(a)
        selection.select(b)
        assert selection.annotations == [b]
        assert selection.single is b

    def test_add_keeps_order_and_ids_unique(self):
        a, b = rectangle(0, 0, 1, 1), rectangle(2, 2, 3, 3)
        selection = SelectionManager()
        selection.select(a)
        selection.select(b, add=True)
        selection.select(a, add=True)
        assert selection.ids == [a.id, b.id]
        assert selection.single is None

    def test_select_none_clears(self):
        selection = SelectionManager()
        selection.select(rectangle(0, 0, 1, 1))
        selection.select(None)
        assert not selection

    def test_resync_swaps_instances_and_drops_missing(self):
        a, b = rectangle(0, 0, 1, 1), rectangle(2, 2, 3, 3)
        selection = SelectionManager()
        selection.set([a, b])
        fresh_a = a.clone()
        selection.resync([fresh_a])
        assert selection.annotations == [fresh_a]
        assert selection.annotations[0] is fresh_a

    def test_remove(self):
        a, b = rectangle(0, 0, 1, 1), rectangle(2, 2, 3, 3)
        selection = SelectionManager()
        selection.set([a, b])
        selection.remove(a.id)
        assert selection.ids == [b.id]


class TestRubberBand:

    def test_text_needs_center_inside_inclusive(self):
        text = make_annotation(AnnotationType.TEXT, (0, 0), text="x", width=120, height=40)
        assert in_selection_box(text, QPointF(60, 20), QPointF(200, 200))
        assert not in_selection_box(text, QPointF(60.01, 20), QPointF(200, 200))

    def test_sticky_needs_center_inside(self):
        sticky = make_annotation(AnnotationType.STICKY_NOTE, (0, 0), width=200, height=150)
        assert in_selection_box(sticky, QPointF(90, 70), QPointF(110, 80))
        assert not in_selection_box(sticky, QPointF(0, 0), QPointF(50, 50))

    def test_stamp_needs_full_containment(self):
        stamp = make_annotation(AnnotationType.STAMP_APPROVED, (100, 100))
        assert in_selection_box(stamp, QPointF(10, 75), QPointF(190, 125))
        assert not in_selection_box(stamp, QPointF(11, 75), QPointF(190, 125))

    def test_shape_corner_inside(self):
        shape = rectangle(0, 0, 100, 100)
        assert in_selection_box(shape, QPointF(90, 90), QPointF(150, 150))

    def test_shape_edge_crossing(self):
        shape = rectangle(0, 0, 100, 100)
        # No corner of the shape in the band, but the band cuts across it
        assert in_selection_box(shape, QPointF(40, -10), QPointF(60, 110))

    def test_band_inside_shape_does_not_select(self):
        shape = rectangle(0, 0, 100, 100)
        assert not in_selection_box(shape, QPointF(40, 40), QPointF(60, 60))

    def test_band_drawn_in_any_direction(self):
        shape = rectangle(10, 10, 20, 20)
        assert in_selection_box(shape, QPointF(30, 30), QPointF(0, 0))

    def test_annotations_in_box(self):
        near = rectangle(10, 10, 50, 40)
        far = rectangle(300, 300, 350, 350)
        assert annotations_in_box([near, far], QPointF(0, 0), QPointF(100, 100)) == [near]


class TestResizeBox:

    def test_bottom_right(self):
        shape = rectangle(10, 10, 50, 40)
        points = resized_points(shape, ResizeHandle.BOTTOM_RIGHT, QPointF(80, 60))
        assert bounds(points) == Bounds(10, 10, 80, 60)

    def test_edge_handle_moves_one_side(self):
        shape = rectangle(10, 10, 50, 40)
        points = resized_points(shape, ResizeHandle.TOP, QPointF(999, 0))
        assert bounds(points) == Bounds(10, 0, 50, 40)

    def test_min_size_clamp(self):
        shape = rectangle(10, 10, 50, 40)
        points = resized_points(shape, ResizeHandle.TOP_LEFT, QPointF(100, 100))
        assert bounds(points) == Bounds(40, 30, 50, 40)

    def test_point_order_preserved(self):
        line = make_annotation(AnnotationType.ARROW, (50, 40), (10, 10))
        start, end = resized_points(line, ResizeHandle.BOTTOM_RIGHT, QPointF(80, 60))
        # The arrow still points from the bottom-right corner
        assert start == QPointF(80, 60)
        assert end == QPointF(10, 10)

    def test_input_not_modified(self):
        shape = rectangle(10, 10, 50, 40)
        resized_points(shape, ResizeHandle.BOTTOM_RIGHT, QPointF(80, 60))
        assert bounds(shape.points) == Bounds(10, 10, 50, 40)


class TestResizeCircle:

    def test_opposite_handle_stays(self):
        shape = make_annotation(AnnotationType.CIRCLE, (100, 100), (150, 100))
        points = resized_points(shape, ResizeHandle.RIGHT, QPointF(170, 100))
        center, radius = circle_geometry(points[0], points[1], False)
        assert center == QPointF(110, 100)
        assert radius == pytest.approx(60)
        # Left edge of the circle did not move
        assert center.x() - radius == pytest.approx(50)

    def test_diameter_mode_returns_diameter_ends(self):
        shape = make_annotation(
            AnnotationType.CIRCLE, (0, 0), (100, 0),
            style=AnnotationStyle(circle_diameter_mode=True),
        )
        points = resized_points(shape, ResizeHandle.RIGHT, QPointF(120, 0))
        assert points[0] == QPointF(0, 0)
        assert points[1] == QPointF(120, 0)

    def test_uniform_scales_about_center(self):
        shape = make_annotation(AnnotationType.CIRCLE, (100, 100), (150, 100))
        points = resized_points(shape, ResizeHandle.TOP, QPointF(100, 20), uniform=True)
        center, radius = circle_geometry(points[0], points[1], False)
        assert center == QPointF(100, 100)
        assert radius == pytest.approx(80)

    def test_min_diameter(self):
        shape = make_annotation(AnnotationType.CIRCLE, (100, 100), (150, 100))
        points = resized_points(shape, ResizeHandle.RIGHT, QPointF(52, 100))
        _, radius = circle_geometry(points[0], points[1], False)
        assert radius == pytest.approx(5)


class TestInvalidResize:

    def test_edge_handle_on_line_is_noop(self):
        line = make_annotation(AnnotationType.LINE, (0, 0), (100, 50))
        assert not is_valid_resize(line, ResizeHandle.LEFT)
        points = resized_points(line, ResizeHandle.LEFT, QPointF(-50, 25))
        assert points == line.points

    def test_freehand_has_no_handles(self):
        stroke = make_annotation(AnnotationType.FREEHAND, (0, 0), (10, 10), (20, 0))
        assert not is_valid_resize(stroke, ResizeHandle.BOTTOM_RIGHT)

    def test_missing_handle(self):
        assert not is_valid_resize(rectangle(0, 0, 10, 10), None)


def test_translate_all_applies_same_delta():
    a = rectangle(0, 0, 10, 10)
    b = make_annotation(AnnotationType.STAMP, (100, 100))
    translate_all([a, b], 5, -3)
    assert a.points == [QPointF(5, -3), QPointF(15, 7)]
    assert b.points == [QPointF(105, 97)]
