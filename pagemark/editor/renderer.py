"""
QPainter rendering of a page's annotations.

AnnotationRenderer paints one RenderState per frame. The caller translates
the painter to the page surface origin; the renderer applies the zoom
scale itself, so everything below is drawn in document units. Sizes that
should stay constant on screen (handles, dashes, outlines) are divided by
the scale.

Paint order:
1. Committed annotations (the one being text-edited is skipped)
2. The drawing preview
3. The armed text/sticky preview under the cursor
4. Selection outlines and resize handles
5. The rubber band
6. The uniform-resize badge
"""

import math
from typing import Callable, Dict, List, Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import (
    QBrush,
    QColor,
    QFont,
    QFontMetricsF,
    QPainter,
    QPainterPath,
    QPen,
    QPolygonF,
)

from pagemark.editor.annotations import (
    STICKY_NOTE_SIZE,
    Annotation,
    AnnotationType,
)
from pagemark.editor.geometry import (
    Bounds,
    bounds,
    circle_geometry,
    star_points,
    triangle_points,
)
from pagemark.editor.hit_testing import (
    annotation_box,
    handle_positions,
    stamp_box,
    text_box,
    text_padding,
)
from pagemark.services.logging_service import get_logger

# Selection decorations, device pixels
SELECTION_COLOR = QColor("#2563eb")
MULTI_SELECTION_COLOR = QColor("#4299e1")
HANDLE_COLOR = QColor("#3b82f6")
HIGHLIGHT_HANDLE_COLOR = QColor("#2563eb")
HANDLE_SIZE = 5.0
HIGHLIGHT_HANDLE_SIZE = 7.0
SELECTION_PADDING = 4.0

BAND_COLOR = QColor("#0066FF")
BAND_FILL = QColor(0, 102, 255, 26)

BADGE_FILL = QColor(37, 99, 235, 77)
BADGE_TEXT = "Uniform"

# Document units
LINE_HEIGHT = 1.2
STICKY_CORNER = 20.0
STICKY_PADDING = 10.0
STICKY_FONT_SIZE = 14
STICKY_COLOR = QColor("#FFD700")
HIGHLIGHT_MAX_OPACITY = 0.7
HIGHLIGHT_DEFAULT_OPACITY = 0.3
ARROW_HEAD_BASE = 8.0
ARROW_HEAD_ANGLE = math.pi / 6

# Label icon and drawing color per stamp kind
STAMP_APPEARANCE = {
    "approved": ("✓", QColor("#22c55e")),
    "rejected": ("✗", QColor("#ef4444")),
    "revision": ("↻", QColor("#f97316")),
}
STAMP_DEFAULT_COLOR = QColor("#FF0000")


def arrow_head_length(line_width: float) -> float:
    """Head length grows with the stroke width."""
    return ARROW_HEAD_BASE * (1 + (line_width - 1) * 0.5)


def _font(family: str, pixel_size: float, bold: bool = False, italic: bool = False) -> QFont:
    font = QFont(family or "Arial")
    font.setPixelSize(max(1, int(round(pixel_size))))
    font.setBold(bold)
    font.setItalic(italic)
    return font


class AnnotationRenderer:
    """
    Paints annotations and editing decorations with a QPainter.

    Stateless apart from the per-type dispatch table, so one instance can
    serve any number of canvases.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)
        self._painters: Dict[AnnotationType, Callable[[QPainter, Annotation], None]] = {
            AnnotationType.FREEHAND: self._paint_freehand,
            AnnotationType.LINE: self._paint_line,
            AnnotationType.RECTANGLE: self._paint_rectangle,
            AnnotationType.CIRCLE: self._paint_circle,
            AnnotationType.TRIANGLE: self._paint_triangle,
            AnnotationType.STAR: self._paint_star,
            AnnotationType.ARROW: self._paint_arrow,
            AnnotationType.DOUBLE_ARROW: self._paint_double_arrow,
            AnnotationType.HIGHLIGHT: self._paint_highlight,
            AnnotationType.TEXT: self._paint_text,
            AnnotationType.STICKY_NOTE: self._paint_sticky_note,
            AnnotationType.STAMP: self._paint_stamp,
            AnnotationType.STAMP_APPROVED: self._paint_stamp,
            AnnotationType.STAMP_REJECTED: self._paint_stamp,
            AnnotationType.STAMP_REVISION: self._paint_stamp,
        }

    # ─── Frame ────────────────────────────────────────────────────────────

    def paint(self, painter: QPainter, state) -> None:
        """
        Paint a full frame.

        Args:
            painter: Painter already translated to the page surface origin.
            state: RenderState snapshot from the engine.
        """
        scale = state.scale
        painter.save()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.scale(scale, scale)

        for annotation in state.annotations:
            if annotation.id == state.editing_id:
                continue
            self.paint_annotation(painter, annotation)

        if state.preview is not None:
            self.paint_annotation(painter, state.preview)

        if state.armed_preview is not None:
            painter.save()
            painter.setOpacity(0.5)
            self.paint_annotation(painter, state.armed_preview)
            painter.restore()

        selected = [a for a in state.annotations if a.id in state.selected_ids]
        self._paint_selection(painter, selected, scale)

        if state.band is not None:
            self._paint_band(painter, state.band, scale)

        if state.uniform_center is not None:
            self._paint_uniform_badge(painter, state.uniform_center, scale)

        painter.restore()

    def paint_annotation(self, painter: QPainter, annotation: Annotation) -> None:
        if not annotation.points:
            return
        paint = self._painters.get(annotation.type)
        if paint is None:
            self._logger.warning(f"No painter for annotation type {annotation.type}")
            return
        painter.save()
        paint(painter, annotation)
        painter.restore()

    # ─── Strokes and Shapes ───────────────────────────────────────────────

    def _apply_stroke(self, painter: QPainter, annotation: Annotation, cap=Qt.PenCapStyle.RoundCap) -> None:
        pen = QPen(annotation.style.color)
        pen.setWidthF(annotation.style.line_width)
        pen.setCapStyle(cap)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.setOpacity(annotation.style.opacity)

    def _paint_freehand(self, painter: QPainter, annotation: Annotation) -> None:
        points = annotation.points
        if len(points) < 2:
            return
        path = QPainterPath()
        path.moveTo(points[0])
        for point in points[1:]:
            path.lineTo(point)
        self._apply_stroke(painter, annotation)
        painter.drawPath(path)

    def _paint_line(self, painter: QPainter, annotation: Annotation) -> None:
        if len(annotation.points) < 2:
            return
        self._apply_stroke(painter, annotation)
        painter.drawLine(annotation.points[0], annotation.points[1])

    def _paint_rectangle(self, painter: QPainter, annotation: Annotation) -> None:
        if len(annotation.points) < 2:
            return
        self._apply_stroke(painter, annotation)
        painter.drawRect(bounds(annotation.points[:2]).to_rect())

    def _paint_circle(self, painter: QPainter, annotation: Annotation) -> None:
        if len(annotation.points) < 2:
            return
        center, radius = circle_geometry(
            annotation.points[0],
            annotation.points[1],
            annotation.style.circle_diameter_mode,
        )
        self._apply_stroke(painter, annotation)
        painter.drawEllipse(center, radius, radius)

    def _paint_triangle(self, painter: QPainter, annotation: Annotation) -> None:
        if len(annotation.points) < 2:
            return
        self._apply_stroke(painter, annotation)
        painter.drawPolygon(QPolygonF(triangle_points(bounds(annotation.points[:2]))))

    def _paint_star(self, painter: QPainter, annotation: Annotation) -> None:
        if len(annotation.points) < 2:
            return
        self._apply_stroke(painter, annotation)
        painter.drawPolygon(QPolygonF(star_points(bounds(annotation.points[:2]))))

    # ─── Arrows ───────────────────────────────────────────────────────────

    def _arrow_head(self, tip: QPointF, ux: float, uy: float, length: float) -> QPolygonF:
        """Filled head with its tip at `tip`, pointing along (ux, uy)."""
        angle = math.atan2(uy, ux)
        left = QPointF(
            tip.x() - length * math.cos(angle - ARROW_HEAD_ANGLE),
            tip.y() - length * math.sin(angle - ARROW_HEAD_ANGLE),
        )
        right = QPointF(
            tip.x() - length * math.cos(angle + ARROW_HEAD_ANGLE),
            tip.y() - length * math.sin(angle + ARROW_HEAD_ANGLE),
        )
        return QPolygonF([tip, left, right])

    def _paint_arrow_shape(self, painter: QPainter, annotation: Annotation, double: bool) -> None:
        if len(annotation.points) < 2:
            return
        start, end = annotation.points[0], annotation.points[1]
        dx = end.x() - start.x()
        dy = end.y() - start.y()
        length = math.hypot(dx, dy)

        self._apply_stroke(painter, annotation, cap=Qt.PenCapStyle.FlatCap)
        if length == 0:
            return
        ux, uy = dx / length, dy / length

        head = min(arrow_head_length(annotation.style.line_width), length / (2 if double else 1))
        # Stop the shaft at the base of the head so it does not poke through the tip
        inset = head * math.cos(ARROW_HEAD_ANGLE)
        line_start = QPointF(start.x() + ux * inset, start.y() + uy * inset) if double else start
        line_end = QPointF(end.x() - ux * inset, end.y() - uy * inset)
        painter.drawLine(line_start, line_end)

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(annotation.style.color)
        painter.drawPolygon(self._arrow_head(end, ux, uy, head))
        if double:
            painter.drawPolygon(self._arrow_head(start, -ux, -uy, head))

    def _paint_arrow(self, painter: QPainter, annotation: Annotation) -> None:
        self._paint_arrow_shape(painter, annotation, double=False)

    def _paint_double_arrow(self, painter: QPainter, annotation: Annotation) -> None:
        self._paint_arrow_shape(painter, annotation, double=True)

    # ─── Highlight ────────────────────────────────────────────────────────

    def _paint_highlight(self, painter: QPainter, annotation: Annotation) -> None:
        points = annotation.points
        if len(points) < 2:
            return
        opacity = annotation.style.opacity or HIGHLIGHT_DEFAULT_OPACITY
        painter.setOpacity(min(opacity, HIGHLIGHT_MAX_OPACITY))
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(annotation.style.color)

        if len(points) == 2:
            painter.drawRect(bounds(points).to_rect())
        else:
            painter.drawPolygon(QPolygonF(points))

    # ─── Text and Sticky Notes ────────────────────────────────────────────

    def _draw_lines(
        self,
        painter: QPainter,
        lines: List[str],
        left: float,
        top: float,
        font: QFont,
        max_width: Optional[float] = None,
        underline: bool = False,
    ) -> None:
        painter.setFont(font)
        metrics = QFontMetricsF(font)
        line_height = font.pixelSize() * LINE_HEIGHT
        baseline = top + metrics.ascent()
        for i, line in enumerate(lines):
            if max_width is not None:
                line = metrics.elidedText(line, Qt.TextElideMode.ElideRight, max_width)
            y = baseline + i * line_height
            painter.drawText(QPointF(left, y), line)
            if underline:
                width = metrics.horizontalAdvance(line)
                painter.drawLine(QPointF(left, y + 3), QPointF(left + width, y + 3))

    def _paint_text(self, painter: QPainter, annotation: Annotation) -> None:
        style = annotation.style
        options = style.text_options
        box = text_box(annotation)

        painter.setOpacity(style.opacity)
        if style.background_color is not None:
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(style.background_color)
            painter.drawRect(box.to_rect())

        if not annotation.text:
            return
        painter.setPen(QPen(style.color, 1))
        font = _font(options.font_family, options.font_size or 14, options.bold, options.italic)
        padding = text_padding(options.font_size or 14)
        self._draw_lines(
            painter,
            annotation.text.split("\n"),
            box.left + padding,
            box.top + padding,
            font,
            underline=options.underline,
        )

    def _paint_sticky_note(self, painter: QPainter, annotation: Annotation) -> None:
        box = text_box(annotation)
        width = box.width or STICKY_NOTE_SIZE[0]
        left, top = box.left, box.top
        corner = min(STICKY_CORNER, width, box.height)

        outline = QPolygonF([
            QPointF(left, top),
            QPointF(left + width - corner, top),
            QPointF(left + width, top + corner),
            QPointF(left + width, box.bottom),
            QPointF(left, box.bottom),
        ])

        # Drop shadow, then the note
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(0, 0, 0, 51))
        painter.drawPolygon(outline.translated(2, 2))
        painter.setBrush(annotation.style.background_color or STICKY_COLOR)
        painter.drawPolygon(outline)

        # Folded corner
        painter.setBrush(QColor(0, 0, 0, 26))
        painter.drawPolygon(QPolygonF([
            QPointF(left + width - corner, top),
            QPointF(left + width - corner, top + corner),
            QPointF(left + width, top + corner),
        ]))

        if not annotation.text:
            return
        painter.setPen(QPen(QColor("#000000"), 1))
        font = _font("Arial", STICKY_FONT_SIZE)
        self._draw_lines(
            painter,
            annotation.text.split("\n"),
            left + STICKY_PADDING,
            top + STICKY_PADDING,
            font,
            max_width=width - 2 * STICKY_PADDING,
        )

    # ─── Stamps ───────────────────────────────────────────────────────────

    def _paint_stamp(self, painter: QPainter, annotation: Annotation) -> None:
        style = annotation.style
        kind = style.stamp_kind or ""
        icon, color = STAMP_APPEARANCE.get(kind, ("", STAMP_DEFAULT_COLOR))
        multiplier = (style.stamp_size or 100) / 100
        box = stamp_box(annotation)
        center = box.center

        painter.setOpacity(style.opacity if style.opacity is not None else 1.0)
        radius = 6 * multiplier
        painter.setPen(QPen(color, 1.5))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRoundedRect(box.to_rect(), radius, radius)

        label = kind.upper()
        label_font = _font("Arial", 20 * multiplier, bold=True)
        icon_font = _font("Arial", 22 * multiplier, bold=True)
        label_width = QFontMetricsF(label_font).horizontalAdvance(label)
        icon_width = QFontMetricsF(icon_font).horizontalAdvance(icon)
        spacing = 15 * multiplier
        start_x = center.x() - (icon_width + spacing + label_width) / 2

        painter.setPen(color)
        for text, font, x in (
            (icon, icon_font, start_x),
            (label, label_font, start_x + icon_width + spacing),
        ):
            metrics = QFontMetricsF(font)
            # Vertically centered on the anchor
            baseline = center.y() + (metrics.ascent() - metrics.descent()) / 2
            painter.setFont(font)
            painter.drawText(QPointF(x, baseline), text)

    # ─── Decorations ──────────────────────────────────────────────────────

    def _paint_selection(self, painter: QPainter, selected: List[Annotation], scale: float) -> None:
        if not selected:
            return
        color = SELECTION_COLOR if len(selected) == 1 else MULTI_SELECTION_COLOR

        painter.save()
        painter.setOpacity(1.0)
        pen = QPen(color, 1 / scale)
        pen.setDashPattern([4, 3])
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        for annotation in selected:
            if not annotation.points:
                continue
            box = annotation_box(annotation).expanded(SELECTION_PADDING / scale)
            painter.drawRect(box.to_rect())

        if len(selected) == 1:
            self._paint_handles(painter, selected[0], scale)
        painter.restore()

    def _paint_handles(self, painter: QPainter, annotation: Annotation, scale: float) -> None:
        is_highlight = annotation.type == AnnotationType.HIGHLIGHT
        size = (HIGHLIGHT_HANDLE_SIZE if is_highlight else HANDLE_SIZE) / scale
        color = HIGHLIGHT_HANDLE_COLOR if is_highlight else HANDLE_COLOR

        painter.setPen(QPen(color, 1 / scale))
        painter.setBrush(QColor(255, 255, 255))
        for _, position in handle_positions(annotation):
            if annotation.type == AnnotationType.CIRCLE:
                painter.drawEllipse(position, size, size)
            else:
                painter.drawRect(QRectF(position.x() - size, position.y() - size, size * 2, size * 2))

    def _paint_band(self, painter: QPainter, band: Bounds, scale: float) -> None:
        painter.save()
        pen = QPen(BAND_COLOR, 1 / scale)
        pen.setDashPattern([5, 5])
        painter.setPen(pen)
        painter.setBrush(QBrush(BAND_FILL))
        painter.drawRect(band.to_rect())
        painter.restore()

    def _paint_uniform_badge(self, painter: QPainter, center: QPointF, scale: float) -> None:
        painter.save()
        font = _font("Arial", 12 / scale, bold=True)
        metrics = QFontMetricsF(font)
        padding = 4 / scale
        width = metrics.horizontalAdvance(BADGE_TEXT) + padding * 2
        height = metrics.height() + padding
        rect = QRectF(center.x() - width / 2, center.y() - height / 2, width, height)

        painter.setPen(QPen(SELECTION_COLOR, 1 / scale))
        painter.setBrush(BADGE_FILL)
        painter.drawRoundedRect(rect, 3 / scale, 3 / scale)
        painter.setFont(font)
        painter.setPen(SELECTION_COLOR)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, BADGE_TEXT)
        painter.restore()
