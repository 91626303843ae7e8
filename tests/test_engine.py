"""
Tests for AnnotationEngine.

All tests use the default view (scale 1, no scroll, surface at the
viewport origin), so viewport and document coordinates coincide unless a
test sets its own ViewState.
"""
import pytest
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor

from pagemark.editor.annotations import AnnotationType
from pagemark.editor.coordinates import ViewState
from pagemark.editor.engine import AnnotationEngine, CursorHint, GestureMode
from pagemark.editor.geometry import Bounds, bounds
from pagemark.editor.store import AnnotationStoreError, InMemoryAnnotationStore
from pagemark.editor.tools import ToolType
from builders import make_annotation, rectangle

SHIFT = Qt.KeyboardModifier.ShiftModifier


def drag(engine, *points, modifiers=Qt.KeyboardModifier.NoModifier):
    """Press at the first point, move through the rest, release at the last."""
    first, *rest = [QPointF(x, y) for x, y in points]
    engine.pointer_down(first, modifiers)
    for point in rest:
        engine.pointer_move(point, modifiers)
    engine.pointer_up(rest[-1] if rest else first, modifiers)


def draw(engine, tool_type, *points):
    engine.set_tool(tool_type)
    drag(engine, *points)
    return engine.annotations[-1]


class FailingStore(InMemoryAnnotationStore):

    def add_annotation(self, document_id, annotation):
        raise AnnotationStoreError("disk full")


class TestDrawing:

    def test_rectangle_end_to_end(self, engine, store):
        shape = draw(engine, ToolType.RECTANGLE, (10, 10), (50, 40))
        assert shape.type == AnnotationType.RECTANGLE
        assert bounds(shape.points) == Bounds(10, 10, 50, 40)

        engine.set_tool(ToolType.SELECT)
        engine.select(shape)
        drag(engine, (50, 40), (80, 60))
        assert bounds(shape.points) == Bounds(10, 10, 80, 60)

        engine.translate_selection(5, -5)
        assert bounds(shape.points) == Bounds(15, 5, 85, 55)

        stored = store.list_annotations(engine.document_id, 1)
        assert len(stored) == 1
        assert bounds(stored[0].points) == Bounds(15, 5, 85, 55)

    def test_new_annotation_carries_style_and_author(self, engine):
        style = engine.style.clone()
        style.color = QColor("#ff0000")
        style.line_width = 6
        engine.set_style(style)

        shape = draw(engine, ToolType.ARROW, (0, 0), (100, 0))
        assert shape.style.color == QColor("#ff0000")
        assert shape.style.line_width == 6
        assert shape.author_id == engine.settings.author_id
        assert shape.page_number == 1

    def test_style_is_copied(self, engine):
        shape = draw(engine, ToolType.LINE, (0, 0), (100, 0))
        engine.style.line_width = 9
        assert shape.style.line_width != 9

    def test_click_without_drag_still_commits_shape(self, engine):
        shape = draw(engine, ToolType.CIRCLE, (20, 20))
        assert shape.points == [QPointF(20, 20), QPointF(20, 20)]

    def test_preview_during_drawing(self, engine):
        engine.set_tool(ToolType.STAR)
        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(40, 40))
        state = engine.render_state()
        assert state.preview is not None
        assert state.preview.type == AnnotationType.STAR
        assert state.preview.points[-1] == QPointF(40, 40)
        assert engine.annotations == []

        engine.pointer_up(QPointF(40, 40))
        assert engine.render_state().preview is None
        assert engine.mode == GestureMode.IDLE


class TestFreehand:

    def test_close_samples_filtered(self, engine):
        engine.set_tool(ToolType.FREEHAND)
        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(1, 0))
        engine.pointer_move(QPointF(1.5, 1))
        assert len(engine.gesture.points) == 1

        engine.pointer_up(QPointF(1.5, 1))
        # A single point is not an annotation
        assert engine.annotations == []

    def test_spaced_samples_kept(self, engine):
        stroke = draw(engine, ToolType.FREEHAND, (0, 0), (3, 0), (6, 0), (9, 0))
        assert stroke.type == AnnotationType.FREEHAND
        assert len(stroke.points) == 4

    def test_scroll_forces_sample(self, engine):
        engine.set_tool(ToolType.FREEHAND)
        engine.pointer_down(QPointF(0, 0))
        engine.set_view_state(ViewState(scroll_y=1))
        engine.pointer_move(QPointF(0, 0))
        # Same viewport position, but the page moved underneath it
        assert engine.gesture.points[-1] == QPointF(0, 1)
        assert len(engine.gesture.points) == 2

    def test_leave_commits_freehand(self, engine):
        engine.set_tool(ToolType.FREEHAND)
        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(10, 10))
        engine.pointer_leave()
        assert len(engine.annotations) == 1
        assert engine.mode == GestureMode.IDLE

    def test_leave_abandons_shape(self, engine):
        engine.set_tool(ToolType.RECTANGLE)
        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(10, 10))
        engine.pointer_leave()
        assert engine.annotations == []
        assert engine.mode == GestureMode.IDLE


class TestSelection:

    def test_click_selects_topmost(self, engine):
        bottom = rectangle(0, 0, 100, 100)
        top = rectangle(50, 50, 150, 150)
        engine.add_annotation(bottom)
        engine.add_annotation(top)
        drag(engine, (75, 75))
        assert engine.selection.ids == [top.id]

    def test_click_empty_space_clears(self, engine):
        shape = rectangle(0, 0, 10, 10)
        engine.add_annotation(shape)
        engine.select(shape)
        drag(engine, (500, 500))
        assert not engine.selection

    def test_rubber_band(self, engine, recorder):
        near = rectangle(10, 10, 50, 40)
        far = rectangle(300, 300, 350, 350)
        engine.add_annotation(near)
        engine.add_annotation(far)
        engine.selection_changed.connect(recorder)

        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(100, 100))
        assert engine.mode == GestureMode.SELECTING
        assert engine.render_state().band == Bounds(0, 0, 100, 100)

        engine.pointer_up(QPointF(100, 100))
        assert engine.selection.ids == [near.id]
        assert recorder.calls[-1] == ([near.id],)
        assert engine.render_state().band is None

    def test_move_multi_selection(self, engine, store):
        a = rectangle(0, 0, 10, 10)
        b = rectangle(100, 100, 120, 120)
        engine.add_annotation(a)
        engine.add_annotation(b)
        engine.select(a)
        engine.select(b, add=True)

        drag(engine, (5, 5), (15, 25))
        assert bounds(a.points) == Bounds(10, 20, 20, 30)
        assert bounds(b.points) == Bounds(110, 120, 130, 140)
        stored = {x.id: x for x in store.list_annotations(engine.document_id, 1)}
        assert bounds(stored[b.id].points) == Bounds(110, 120, 130, 140)

    def test_handles_ignored_with_multi_selection(self, engine):
        a = rectangle(10, 10, 50, 40)
        b = rectangle(100, 100, 120, 120)
        engine.add_annotation(a)
        engine.add_annotation(b)
        engine.select(a)
        engine.select(b, add=True)

        engine.pointer_down(QPointF(50, 40))
        assert engine.mode == GestureMode.MOVING
        engine.pointer_up(QPointF(50, 40))

    def test_uniform_circle_resize_shows_badge(self, engine):
        shape = make_annotation(AnnotationType.CIRCLE, (100, 100), (150, 100))
        engine.add_annotation(shape)
        engine.select(shape)

        engine.pointer_down(QPointF(150, 100), SHIFT)
        assert engine.mode == GestureMode.RESIZING
        engine.pointer_move(QPointF(180, 100), SHIFT)
        assert engine.render_state().uniform_center == QPointF(100, 100)
        engine.pointer_up(QPointF(180, 100), SHIFT)
        assert shape.points[1] == QPointF(180, 100)
        assert engine.render_state().uniform_center is None

    def test_leave_during_move_restores_position(self, engine, store):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)
        engine.pointer_down(QPointF(20, 20))
        engine.pointer_move(QPointF(120, 20))
        assert bounds(shape.points) == Bounds(110, 10, 150, 40)

        engine.pointer_leave()
        stored = store.list_annotations(engine.document_id, 1)[0]
        assert bounds(shape.points) == Bounds(10, 10, 50, 40)
        assert bounds(stored.points) == Bounds(10, 10, 50, 40)
        assert engine.mode == GestureMode.IDLE

    def test_leave_during_resize_restores_size(self, engine, store):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)
        engine.select(shape)
        engine.pointer_down(QPointF(50, 40))
        assert engine.mode == GestureMode.RESIZING
        engine.pointer_move(QPointF(80, 60))
        assert bounds(shape.points) == Bounds(10, 10, 80, 60)

        engine.pointer_leave()
        stored = store.list_annotations(engine.document_id, 1)[0]
        assert bounds(shape.points) == Bounds(10, 10, 50, 40)
        assert bounds(stored.points) == Bounds(10, 10, 50, 40)

    def test_nudge_after_abandoned_move_saves_only_nudge(self, engine, store):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)
        engine.pointer_down(QPointF(20, 20))
        engine.pointer_move(QPointF(120, 20))
        engine.pointer_leave()

        engine.translate_selection(5, 0)
        stored = store.list_annotations(engine.document_id, 1)[0]
        assert bounds(stored.points) == Bounds(15, 10, 55, 40)

    def test_click_without_move_does_not_persist(self, qapp):
        class CountingStore(InMemoryAnnotationStore):
            updates = 0

            def update_annotation(self, document_id, annotation):
                CountingStore.updates += 1
                super().update_annotation(document_id, annotation)

        store = CountingStore()
        engine = AnnotationEngine(store, "doc")
        engine.add_annotation(rectangle(0, 0, 10, 10))
        drag(engine, (5, 5))
        assert CountingStore.updates == 0

    def test_context_select(self, engine):
        a = rectangle(0, 0, 10, 10)
        b = rectangle(100, 100, 120, 120)
        engine.add_annotation(a)
        engine.add_annotation(b)

        assert engine.context_select(QPointF(5, 5)) is a
        engine.context_select(QPointF(110, 110), add=True)
        assert engine.selection.ids == [a.id, b.id]

        assert engine.context_select(QPointF(500, 500), add=True) is None
        assert len(engine.selection) == 2
        engine.context_select(QPointF(500, 500))
        assert not engine.selection

    def test_set_tool_clears_selection(self, engine, recorder):
        shape = rectangle(0, 0, 10, 10)
        engine.add_annotation(shape)
        engine.select(shape)
        engine.tool_changed.connect(recorder)

        engine.set_tool(ToolType.RECTANGLE)
        assert not engine.selection
        assert recorder.calls == [(ToolType.RECTANGLE,)]

    def test_translate_selection_persists(self, engine, store):
        shape = rectangle(0, 0, 10, 10)
        engine.add_annotation(shape)
        engine.select(shape)
        engine.translate_selection(3, 4)
        assert store.list_annotations(engine.document_id, 1)[0].points[0] == QPointF(3, 4)

    def test_delete_selected(self, engine, store):
        a = rectangle(0, 0, 10, 10)
        b = rectangle(100, 100, 120, 120)
        engine.add_annotation(a)
        engine.add_annotation(b)
        engine.select(a)

        assert engine.delete_selected() == 1
        assert [x.id for x in engine.annotations] == [b.id]
        assert [x.id for x in store.list_annotations(engine.document_id, 1)] == [b.id]
        assert engine.delete_selected() == 0


class TestTextAndStamps:

    def test_text_tool_creates_and_opens_editor(self, engine, recorder):
        engine.text_edit_requested.connect(recorder)
        engine.set_tool(ToolType.TEXT)
        engine.pointer_down(QPointF(100, 100))
        engine.pointer_up(QPointF(100, 100))

        text = engine.annotations[-1]
        assert text.type == AnnotationType.TEXT
        assert (text.width, text.height) == (120, 40)
        assert text.points[0] == QPointF(40, 80)
        assert text.text == engine.settings.default_text

        assert engine.tool_type == ToolType.SELECT
        assert engine.mode == GestureMode.EDITING_TEXT
        assert engine.text_session.annotation_id == text.id
        assert recorder.calls[0][0].annotation_id == text.id
        assert engine.render_state().editing_id == text.id

    def test_sticky_note(self, engine):
        engine.set_tool(ToolType.STICKY_NOTE)
        engine.pointer_down(QPointF(300, 300))
        note = engine.annotations[-1]
        assert note.type == AnnotationType.STICKY_NOTE
        assert (note.width, note.height) == (200, 150)
        assert note.points[0] == QPointF(200, 225)
        assert note.style.background_color == QColor("#FFD700")

    def test_complete_text_edit(self, engine, store, recorder):
        engine.text_edit_closed.connect(recorder)
        engine.set_tool(ToolType.TEXT)
        engine.pointer_down(QPointF(100, 100))
        text = engine.annotations[-1]

        engine.complete_text_edit("Hello\nworld")
        assert engine.text_session is None
        assert engine.mode == GestureMode.IDLE
        assert recorder.calls == [()]
        assert text.text == "Hello\nworld"
        assert text.width >= 120
        assert store.list_annotations(engine.document_id, 1)[0].text == "Hello\nworld"

    def test_empty_text_deletes(self, engine, store):
        engine.set_tool(ToolType.TEXT)
        engine.pointer_down(QPointF(100, 100))
        engine.complete_text_edit("   ")
        assert engine.annotations == []
        assert store.list_annotations(engine.document_id, 1) == []

    def test_cancel_text_edit_keeps_text(self, engine):
        engine.set_tool(ToolType.TEXT)
        engine.pointer_down(QPointF(100, 100))
        engine.cancel_text_edit()
        assert engine.text_session is None
        assert engine.annotations[-1].text == engine.settings.default_text

    def test_pointer_down_cancels_open_edit(self, engine):
        engine.set_tool(ToolType.TEXT)
        engine.pointer_down(QPointF(100, 100))
        engine.pointer_down(QPointF(500, 500))
        assert engine.text_session is None

    def test_double_click_reopens_editor(self, engine):
        note = make_annotation(
            AnnotationType.STICKY_NOTE, (0, 0), text="Old", width=200, height=150
        )
        engine.add_annotation(note)
        engine.double_click(QPointF(50, 50))
        assert engine.text_session.annotation_id == note.id
        assert engine.text_session.text == "Old"
        assert engine.selection.ids == [note.id]

    def test_double_click_ignores_shapes(self, engine):
        engine.add_annotation(rectangle(0, 0, 100, 100))
        engine.double_click(QPointF(50, 50))
        assert engine.text_session is None

    def test_stamp(self, engine):
        engine.set_tool(ToolType.STAMP_REJECTED)
        engine.pointer_down(QPointF(200, 200))
        engine.pointer_up(QPointF(200, 200))
        stamp = engine.annotations[-1]
        assert stamp.type == AnnotationType.STAMP_REJECTED
        assert stamp.points == [QPointF(200, 200)]
        assert stamp.style.stamp_kind == "rejected"
        assert stamp.style.color == QColor("#FF0000")
        assert engine.tool_type == ToolType.STAMP_REJECTED

    def test_armed_preview_follows_pointer(self, engine):
        engine.set_tool(ToolType.STICKY_NOTE)
        engine.pointer_move(QPointF(300, 300))
        preview = engine.render_state().armed_preview
        assert preview.type == AnnotationType.STICKY_NOTE
        assert preview.points[0] == QPointF(200, 225)
        assert engine.annotations == []

        engine.pointer_leave()
        assert engine.render_state().armed_preview is None


class TestPagesAndStore:

    def test_set_page_loads_page(self, engine):
        shape = rectangle(0, 0, 10, 10)
        engine.add_annotation(shape)
        engine.select(shape)

        engine.set_page(2)
        assert engine.page_number == 2
        assert engine.annotations == []
        assert not engine.selection

        engine.set_page(1)
        assert [a.id for a in engine.annotations] == [shape.id]

    def test_existing_annotations_loaded(self, qapp, store):
        shape = rectangle(0, 0, 10, 10)
        store.add_annotation("doc", shape)
        engine = AnnotationEngine(store, "doc")
        assert [a.id for a in engine.annotations] == [shape.id]

    def test_store_error_propagates(self, qapp):
        engine = AnnotationEngine(FailingStore(), "doc")
        engine.set_tool(ToolType.RECTANGLE)
        engine.pointer_down(QPointF(0, 0))
        engine.pointer_move(QPointF(10, 10))
        with pytest.raises(AnnotationStoreError):
            engine.pointer_up(QPointF(10, 10))
        # Gesture is still reset
        assert engine.mode == GestureMode.IDLE

    def test_refresh_resyncs_selection(self, engine, store):
        shape = rectangle(0, 0, 10, 10)
        engine.add_annotation(shape)
        engine.select(shape)
        store.delete_annotation(engine.document_id, shape.id)
        engine.refresh()
        assert not engine.selection


class TestView:

    def test_invalid_scale_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.set_view_state(ViewState(scale=0))

    def test_zoomed_and_scrolled_drawing(self, engine):
        engine.set_view_state(ViewState(scale=2.0, scroll_y=100, surface_x=20, surface_y=0))
        shape = draw(engine, ToolType.LINE, (20, 0), (120, 0))
        # Surface origin is (20, -100) in the viewport
        assert shape.points == [QPointF(0, 50), QPointF(50, 50)]

    def test_map_round_trip(self, engine):
        engine.set_view_state(ViewState(scale=1.5, scroll_x=30, surface_x=40))
        viewport = engine.map_to_viewport(QPointF(100, 60))
        back = engine.map_to_document(viewport)
        assert back.x() == pytest.approx(100)
        assert back.y() == pytest.approx(60)

    def test_cursor_hints(self, engine):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)

        assert engine.cursor_hint(QPointF(300, 300)) == CursorHint.DEFAULT
        assert engine.cursor_hint(QPointF(30, 25)) == CursorHint.MOVE
        engine.select(shape)
        assert engine.cursor_hint(QPointF(50, 40)) == CursorHint.RESIZE_DIAGONAL
        assert engine.cursor_hint(QPointF(50, 10)) == CursorHint.RESIZE_ANTI_DIAGONAL
        assert engine.cursor_hint(QPointF(10, 25)) == CursorHint.RESIZE_HORIZONTAL

        engine.set_tool(ToolType.DRAG)
        assert engine.cursor_hint(QPointF(30, 25)) == CursorHint.GRAB
        engine.set_tool(ToolType.TEXT)
        assert engine.cursor_hint(QPointF(30, 25)) == CursorHint.TEXT
        engine.set_tool(ToolType.RECTANGLE)
        assert engine.cursor_hint(QPointF(30, 25)) == CursorHint.CROSSHAIR


class TestAutoScroll:

    def test_dragged_selection_follows_scroll(self, engine):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)
        engine.set_view_state(ViewState(viewport_width=400, viewport_height=400))

        scrolled = []

        def scroll(dx, dy):
            scrolled.append((dx, dy))
            # Only part of the request fits in the scroll range
            return 2.0, 0.0

        engine.scroll_handler = scroll
        engine.pointer_down(QPointF(20, 20))
        engine.pointer_move(QPointF(395, 20))
        assert bounds(shape.points) == Bounds(385, 10, 425, 40)
        assert engine.auto_scroll.is_running

        engine.auto_scroll.tick()
        assert len(scrolled) == 1
        assert bounds(shape.points) == Bounds(387, 10, 427, 40)
        assert engine.gesture.move_offset == QPointF(397, 20)

        engine.pointer_up(QPointF(395, 20))
        assert engine.auto_scroll.is_releasing
        engine.auto_scroll.tick()
        # Momentum after release scrolls without moving annotations
        assert bounds(shape.points) == Bounds(387, 10, 427, 40)

    def test_no_auto_scroll_while_drawing(self, engine):
        engine.set_view_state(ViewState(viewport_width=400, viewport_height=400))
        engine.set_tool(ToolType.RECTANGLE)
        engine.pointer_down(QPointF(10, 10))
        engine.pointer_move(QPointF(398, 398))
        assert not engine.auto_scroll.is_running
        engine.pointer_up(QPointF(398, 398))

    def test_leave_stops_auto_scroll(self, engine):
        shape = rectangle(10, 10, 50, 40)
        engine.add_annotation(shape)
        engine.set_view_state(ViewState(viewport_width=400, viewport_height=400))
        engine.pointer_down(QPointF(20, 20))
        engine.pointer_move(QPointF(395, 20))
        engine.pointer_leave()
        assert not engine.auto_scroll.is_running
