"""
Rendering smoke tests: every annotation type and decoration paints onto
an offscreen image without errors, and something actually lands on it.
"""
import pytest
from PySide6.QtCore import QPointF
from PySide6.QtGui import QColor, QImage, QPainter

from pagemark.editor.annotations import AnnotationStyle, AnnotationType
from pagemark.editor.engine import RenderState
from pagemark.editor.geometry import Bounds
from pagemark.editor.renderer import AnnotationRenderer, arrow_head_length
from builders import make_annotation, rectangle

WHITE = QColor(255, 255, 255)


def blank_image():
    image = QImage(400, 400, QImage.Format.Format_ARGB32)
    image.fill(WHITE)
    return image


def render(state):
    image = blank_image()
    painter = QPainter(image)
    try:
        AnnotationRenderer().paint(painter, state)
    finally:
        painter.end()
    return image


def painted(image):
    """Whether any pixel differs from the white background."""
    return image != blank_image()


def sample(annotation_type):
    if annotation_type in (
        AnnotationType.STAMP,
        AnnotationType.STAMP_APPROVED,
        AnnotationType.STAMP_REJECTED,
        AnnotationType.STAMP_REVISION,
    ):
        return make_annotation(annotation_type, (200, 200))
    if annotation_type == AnnotationType.TEXT:
        # Background so the box shows even where no fonts are installed
        return make_annotation(
            annotation_type, (50, 50), text="Hello\nthere", width=150, height=60,
            style=AnnotationStyle(background_color=QColor("#eeeeff")),
        )
    if annotation_type == AnnotationType.STICKY_NOTE:
        return make_annotation(annotation_type, (50, 50), text="Remember", width=200, height=150)
    if annotation_type == AnnotationType.FREEHAND:
        return make_annotation(annotation_type, (20, 20), (60, 80), (120, 40), (200, 160))
    return make_annotation(annotation_type, (40, 40), (220, 180))


@pytest.mark.parametrize("annotation_type", list(AnnotationType))
def test_every_type_paints(qapp, annotation_type):
    state = RenderState(annotations=[sample(annotation_type)], selected_ids=[])
    assert painted(render(state))


def test_polygon_highlight_paints(qapp):
    highlight = make_annotation(AnnotationType.HIGHLIGHT, (10, 10), (200, 10), (100, 200))
    assert painted(render(RenderState(annotations=[highlight], selected_ids=[])))


def test_single_point_shapes_are_skipped(qapp):
    line = make_annotation(AnnotationType.LINE, (10, 10))
    assert not painted(render(RenderState(annotations=[line], selected_ids=[])))


def test_edited_annotation_is_hidden(qapp):
    note = sample(AnnotationType.STICKY_NOTE)
    state = RenderState(annotations=[note], selected_ids=[], editing_id=note.id)
    assert not painted(render(state))


def test_decorations(qapp):
    single = rectangle(20, 20, 120, 80)
    circle = make_annotation(AnnotationType.CIRCLE, (250, 250), (300, 250))
    state = RenderState(
        annotations=[single, circle],
        selected_ids=[circle.id],
        scale=1.5,
        preview=make_annotation(AnnotationType.ARROW, (0, 0), (50, 50)),
        band=Bounds(10, 10, 100, 100),
        armed_preview=make_annotation(
            AnnotationType.TEXT, (100, 100), text="Type here...", width=120, height=40
        ),
        uniform_center=QPointF(250, 250),
    )
    assert painted(render(state))


def test_multi_selection_outlines(qapp):
    a = rectangle(20, 20, 60, 60, style=AnnotationStyle(color=WHITE))
    b = rectangle(100, 100, 160, 160, style=AnnotationStyle(color=WHITE))
    state = RenderState(annotations=[a, b], selected_ids=[a.id, b.id])
    # White shapes are invisible; only the selection outline shows
    assert painted(render(state))


def test_arrow_head_grows_with_width():
    assert arrow_head_length(1) == pytest.approx(8)
    assert arrow_head_length(3) == pytest.approx(16)
