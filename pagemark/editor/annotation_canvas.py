"""
Annotation canvas widget for pagemark.

AnnotationCanvas is a scroll area showing one document page:
- PageSurface paints the page and, through AnnotationRenderer, the
  annotations on top of it
- Pointer events are converted to scroll-viewport coordinates and passed
  to the AnnotationEngine
- Auto-scroll requests from the engine move the scroll bars
- An inline QPlainTextEdit is shown while text is being edited

Supports:
- Zoom (Ctrl+wheel, zoom_in / zoom_out / set_zoom)
- Pan with the drag tool
- Delete / Backspace to remove the selection
"""

from typing import Optional, Tuple

from PySide6.QtCore import QEvent, QObject, QPointF, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QWheelEvent
from PySide6.QtWidgets import QPlainTextEdit, QScrollArea, QWidget

from pagemark.editor.coordinates import ViewState
from pagemark.editor.engine import AnnotationEngine, CursorHint, TextEditSession
from pagemark.editor.renderer import AnnotationRenderer
from pagemark.editor.store import AnnotationStoreError
from pagemark.editor.tools import ToolType
from pagemark.services.logging_service import get_logger

# US Letter in points, the page size used when the host supplies none
DEFAULT_PAGE_SIZE = (612.0, 792.0)

_CURSORS = {
    CursorHint.DEFAULT: Qt.CursorShape.ArrowCursor,
    CursorHint.MOVE: Qt.CursorShape.SizeAllCursor,
    CursorHint.CROSSHAIR: Qt.CursorShape.CrossCursor,
    CursorHint.TEXT: Qt.CursorShape.IBeamCursor,
    CursorHint.GRAB: Qt.CursorShape.OpenHandCursor,
    CursorHint.RESIZE_HORIZONTAL: Qt.CursorShape.SizeHorCursor,
    CursorHint.RESIZE_VERTICAL: Qt.CursorShape.SizeVerCursor,
    CursorHint.RESIZE_DIAGONAL: Qt.CursorShape.SizeFDiagCursor,
    CursorHint.RESIZE_ANTI_DIAGONAL: Qt.CursorShape.SizeBDiagCursor,
}


class PageSurface(QWidget):
    """The scrolled page; paints the page and its annotations."""

    def __init__(self, canvas: "AnnotationCanvas") -> None:
        super().__init__()
        self._canvas = canvas
        self._renderer = AnnotationRenderer()
        self.setMouseTracking(True)
        self.setAttribute(Qt.WidgetAttribute.WA_OpaquePaintEvent)

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(255, 255, 255))
        self._renderer.paint(painter, self._canvas.engine.render_state())
        painter.end()

    def _viewport_pos(self, event: QMouseEvent) -> QPointF:
        # The surface's parent is the scroll viewport
        return event.position() + QPointF(self.pos())

    def mousePressEvent(self, event: QMouseEvent) -> None:
        self._canvas.handle_press(self._viewport_pos(event), event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        self._canvas.handle_move(self._viewport_pos(event), event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        self._canvas.handle_release(self._viewport_pos(event), event)

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._canvas.handle_double_click(self._viewport_pos(event))

    def leaveEvent(self, event) -> None:
        self._canvas.handle_leave()
        super().leaveEvent(event)


class AnnotationCanvas(QScrollArea):
    """
    Scrollable page view hosting an AnnotationEngine.

    Signals:
        zoom_changed: Emitted when the zoom scale changes.
        store_failed: Emitted with a message when the store rejects a change.
    """

    zoom_changed = Signal(float)
    store_failed = Signal(str)

    MIN_ZOOM = 0.25
    MAX_ZOOM = 5.0
    PREVIEW_INTERVAL_MS = 16

    def __init__(
        self,
        engine: AnnotationEngine,
        page_size: Tuple[float, float] = DEFAULT_PAGE_SIZE,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._engine = engine
        self._page_size = page_size
        self._zoom = 1.0

        # Drag tool panning
        self._pan_start: Optional[QPointF] = None

        self._surface = PageSurface(self)
        self.setWidget(self._surface)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setStyleSheet("QScrollArea { background-color: #1a1a1a; }")

        # Repaints the armed text/sticky preview under the cursor
        self._preview_timer = QTimer(self)
        self._preview_timer.setInterval(self.PREVIEW_INTERVAL_MS)
        self._preview_timer.timeout.connect(self._surface.update)

        self._editor = QPlainTextEdit(self._surface)
        self._editor.hide()
        self._editor.installEventFilter(self)

        self._engine.scroll_handler = self.scroll_by
        self._engine.state_changed.connect(self._surface.update)
        self._engine.tool_changed.connect(self._on_tool_changed)
        self._engine.text_edit_requested.connect(self._open_editor)
        self._engine.text_edit_closed.connect(self._close_editor)
        self.horizontalScrollBar().valueChanged.connect(self._push_view_state)
        self.verticalScrollBar().valueChanged.connect(self._push_view_state)

        self._resize_surface()

    @property
    def engine(self) -> AnnotationEngine:
        return self._engine

    # ─── Zoom ─────────────────────────────────────────────────────────────

    @property
    def zoom(self) -> float:
        return self._zoom

    def set_zoom(self, zoom: float) -> None:
        """Set the zoom scale, clamped to MIN/MAX."""
        new_zoom = max(self.MIN_ZOOM, min(self.MAX_ZOOM, zoom))
        if new_zoom == self._zoom:
            return
        self._zoom = new_zoom
        self._resize_surface()
        self.zoom_changed.emit(self._zoom)
        self._logger.debug(f"Zoom set to {self._zoom:.2f}")

    def zoom_in(self) -> None:
        self.set_zoom(self._zoom * 1.25)

    def zoom_out(self) -> None:
        self.set_zoom(self._zoom / 1.25)

    def _resize_surface(self) -> None:
        width, height = self._page_size
        self._surface.resize(int(width * self._zoom), int(height * self._zoom))
        self._push_view_state()

    # ─── View State ───────────────────────────────────────────────────────

    def _push_view_state(self, *_) -> None:
        viewport = self.viewport()
        scroll_x = self.horizontalScrollBar().value()
        scroll_y = self.verticalScrollBar().value()
        origin = self._surface.pos()
        self._engine.set_view_state(ViewState(
            scale=self._zoom,
            scroll_x=scroll_x,
            scroll_y=scroll_y,
            viewport_width=viewport.width(),
            viewport_height=viewport.height(),
            surface_x=origin.x() + scroll_x,
            surface_y=origin.y() + scroll_y,
        ))

    def scroll_by(self, dx: float, dy: float) -> Tuple[float, float]:
        """Scroll the page and return the distance actually scrolled."""
        h_bar = self.horizontalScrollBar()
        v_bar = self.verticalScrollBar()
        old_x, old_y = h_bar.value(), v_bar.value()
        h_bar.setValue(int(round(old_x + dx)))
        v_bar.setValue(int(round(old_y + dy)))
        return h_bar.value() - old_x, v_bar.value() - old_y

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self._push_view_state()

    # ─── Pointer Input ────────────────────────────────────────────────────

    def _guarded(self, call, *args):
        """Run an engine call, reporting store failures instead of raising."""
        try:
            return call(*args)
        except AnnotationStoreError as e:
            self._logger.error(f"Annotation store error: {e}")
            self.store_failed.emit(str(e))
            return None

    def handle_press(self, pos: QPointF, event: QMouseEvent) -> None:
        self.setFocus()
        modifiers = event.modifiers()
        if event.button() == Qt.MouseButton.RightButton:
            add = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
            self._guarded(self._engine.context_select, pos, add)
            return
        if event.button() != Qt.MouseButton.LeftButton:
            return

        if self._engine.tool_type == ToolType.DRAG:
            self._pan_start = pos
            self._surface.setCursor(Qt.CursorShape.ClosedHandCursor)
            return
        self._guarded(self._engine.pointer_down, pos, modifiers)

    def handle_move(self, pos: QPointF, event: QMouseEvent) -> None:
        if self._pan_start is not None:
            delta = pos - self._pan_start
            self.scroll_by(-delta.x(), -delta.y())
            self._pan_start = pos
            return
        self._guarded(self._engine.pointer_move, pos, event.modifiers())
        self._surface.setCursor(_CURSORS[self._engine.cursor_hint(pos)])

    def handle_release(self, pos: QPointF, event: QMouseEvent) -> None:
        if event.button() != Qt.MouseButton.LeftButton:
            return
        if self._pan_start is not None:
            self._pan_start = None
            self._surface.setCursor(Qt.CursorShape.OpenHandCursor)
            return
        self._guarded(self._engine.pointer_up, pos, event.modifiers())

    def handle_double_click(self, pos: QPointF) -> None:
        self._guarded(self._engine.double_click, pos)

    def handle_leave(self) -> None:
        self._pan_start = None
        self._guarded(self._engine.pointer_leave)

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Ctrl+wheel zooms, plain wheel scrolls."""
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            factor = 1.1 if event.angleDelta().y() > 0 else 0.9
            self.set_zoom(self._zoom * factor)
            event.accept()
            return
        super().wheelEvent(event)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            if self._guarded(self._engine.delete_selected):
                return
        if event.key() == Qt.Key.Key_Escape and self._engine.selection:
            self._engine.select(None)
            return
        super().keyPressEvent(event)

    # ─── Tool Preview ─────────────────────────────────────────────────────

    def _on_tool_changed(self, tool_type: ToolType) -> None:
        self._pan_start = None
        if tool_type in (ToolType.TEXT, ToolType.STICKY_NOTE):
            self._preview_timer.start()
        else:
            self._preview_timer.stop()
        self._surface.setCursor(self._engine.tool.cursor)

    # ─── Inline Text Editor ───────────────────────────────────────────────

    def _open_editor(self, session: TextEditSession) -> None:
        annotation = self._engine.find(session.annotation_id)
        position = QPointF(session.anchor.x() * self._zoom, session.anchor.y() * self._zoom)
        width = (annotation.width if annotation and annotation.width else 120) * self._zoom
        height = (annotation.height if annotation and annotation.height else 40) * self._zoom

        self._editor.setGeometry(int(position.x()), int(position.y()), int(width), int(height))
        self._editor.setPlainText(session.text)
        self._editor.selectAll()
        self._editor.show()
        self._editor.setFocus()

    def _close_editor(self) -> None:
        self._editor.hide()
        self.setFocus()

    def _finish_editing(self) -> None:
        if self._engine.text_session is None:
            return
        self._guarded(self._engine.complete_text_edit, self._editor.toPlainText())

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        if watched is self._editor:
            if event.type() == QEvent.Type.KeyPress:
                key = event.key()
                if key == Qt.Key.Key_Escape:
                    self._engine.cancel_text_edit()
                    return True
                if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter) and (
                    event.modifiers() & Qt.KeyboardModifier.ControlModifier
                ):
                    self._finish_editing()
                    return True
            elif event.type() == QEvent.Type.FocusOut and self._editor.isVisible():
                self._finish_editing()
        return super().eventFilter(watched, event)

    def closeEvent(self, event) -> None:
        self._preview_timer.stop()
        self._engine.shutdown()
        super().closeEvent(event)
