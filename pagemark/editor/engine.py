"""
Annotation engine for one document page.

AnnotationEngine owns everything that changes while the user works on a
page: the annotation list, the selection, the gesture in progress, the
open text edit session, the coordinate transform and the auto-scroll
loop. The host widget feeds it pointer events in scroll-viewport
coordinates and repaints whenever state_changed fires.

Tools (see tools.py) are stateless; they call back into the engine to
start gestures, update previews and commit annotations.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Tuple

from PySide6.QtCore import QObject, QPointF, Qt, Signal
from PySide6.QtGui import QColor

from pagemark.editor.annotations import (
    STAMP_COLORS,
    STAMP_KINDS,
    STICKY_NOTE_SIZE,
    TEXT_BOX_SIZE,
    Annotation,
    AnnotationStyle,
    AnnotationType,
    ResizeHandle,
    TextOptions,
)
from pagemark.editor.auto_scroll import AutoScrollController, AutoScrollSettings
from pagemark.editor.coordinates import CoordinateTransform, ViewState
from pagemark.editor.geometry import Bounds, circle_geometry
from pagemark.editor.hit_testing import (
    HANDLE_TOLERANCE,
    hit_resize_handle,
    hit_test,
    measure_text_box,
)
from pagemark.editor.selection import (
    DEFAULT_MIN_SIZE,
    SelectionManager,
    annotations_in_box,
    is_valid_resize,
    resized_points,
    translate_all,
)
from pagemark.editor.store import AnnotationStore, AnnotationStoreError
from pagemark.editor.tools import ToolBase, ToolType, create_tool
from pagemark.services.config_service import ConfigService
from pagemark.services.logging_service import get_logger

NO_MODIFIERS = Qt.KeyboardModifier.NoModifier

# Return value of the host scroll callback, see AutoScrollController
ScrollHandler = Callable[[float, float], Optional[Tuple[float, float]]]


class GestureMode(Enum):
    """What the current pointer-down to pointer-up cycle is doing."""
    IDLE = auto()
    DRAWING_SHAPE = auto()
    DRAWING_FREEHAND = auto()
    SELECTING = auto()
    MOVING = auto()
    RESIZING = auto()
    EDITING_TEXT = auto()


class CursorHint(Enum):
    """Hover feedback the host turns into a mouse cursor."""
    DEFAULT = auto()
    MOVE = auto()
    CROSSHAIR = auto()
    TEXT = auto()
    GRAB = auto()
    RESIZE_HORIZONTAL = auto()
    RESIZE_VERTICAL = auto()
    RESIZE_DIAGONAL = auto()       # top-left / bottom-right
    RESIZE_ANTI_DIAGONAL = auto()  # top-right / bottom-left


_HANDLE_CURSORS = {
    ResizeHandle.TOP_LEFT: CursorHint.RESIZE_DIAGONAL,
    ResizeHandle.BOTTOM_RIGHT: CursorHint.RESIZE_DIAGONAL,
    ResizeHandle.TOP_RIGHT: CursorHint.RESIZE_ANTI_DIAGONAL,
    ResizeHandle.BOTTOM_LEFT: CursorHint.RESIZE_ANTI_DIAGONAL,
    ResizeHandle.LEFT: CursorHint.RESIZE_HORIZONTAL,
    ResizeHandle.RIGHT: CursorHint.RESIZE_HORIZONTAL,
    ResizeHandle.TOP: CursorHint.RESIZE_VERTICAL,
    ResizeHandle.BOTTOM: CursorHint.RESIZE_VERTICAL,
}


@dataclass
class GestureState:
    """
    Transient record of one pointer-down to pointer-up cycle.

    move_offset is the document position the selection was last moved to;
    each move applies the delta from it. original_points holds the
    selection's geometry from before a move or resize.
    """
    mode: GestureMode = GestureMode.IDLE
    annotation_type: Optional[AnnotationType] = None
    points: List[QPointF] = field(default_factory=list)
    handle: Optional[ResizeHandle] = None
    move_offset: Optional[QPointF] = None
    band_start: Optional[QPointF] = None
    band_end: Optional[QPointF] = None
    last_sample_scroll: Optional[QPointF] = None
    uniform: bool = False
    changed: bool = False
    original_points: Dict[str, List[QPointF]] = field(default_factory=dict)


@dataclass
class TextEditSession:
    """An inline text edit in progress."""
    annotation_id: str
    anchor: QPointF
    text: str


@dataclass
class RenderState:
    """Snapshot of everything the renderer needs for one frame."""
    annotations: List[Annotation]
    selected_ids: List[str]
    scale: float = 1.0
    preview: Optional[Annotation] = None
    band: Optional[Bounds] = None
    editing_id: Optional[str] = None
    armed_preview: Optional[Annotation] = None
    pointer: Optional[QPointF] = None
    uniform_center: Optional[QPointF] = None


@dataclass(frozen=True)
class EngineSettings:
    handle_tolerance: float = HANDLE_TOLERANCE
    freehand_min_distance: float = 2.0
    resize_min_size: float = DEFAULT_MIN_SIZE
    author_id: str = "current-user"
    default_text: str = "Type here..."
    text_font_size: int = 14
    text_font_family: str = "Arial"
    text_box: Tuple[float, float] = TEXT_BOX_SIZE
    sticky_box: Tuple[float, float] = STICKY_NOTE_SIZE
    sticky_background: str = "#FFD700"
    color: str = "#000000"
    line_width: float = 2
    opacity: float = 1.0
    circle_diameter_mode: bool = False

    @classmethod
    def from_config(cls, config: ConfigService) -> "EngineSettings":
        style = config.default_style
        return cls(
            handle_tolerance=config.handle_tolerance,
            freehand_min_distance=config.freehand_min_distance,
            resize_min_size=config.resize_min_size,
            author_id=config.author_id,
            default_text=config.default_text,
            text_font_size=config.text_font_size,
            text_font_family=config.text_font_family,
            text_box=config.text_box,
            sticky_box=config.sticky_box,
            sticky_background=config.sticky_background,
            color=style["color"],
            line_width=style["line_width"],
            opacity=style["opacity"],
            circle_diameter_mode=style["circle_diameter_mode"],
        )

    def default_style(self) -> AnnotationStyle:
        return AnnotationStyle(
            color=QColor(self.color),
            line_width=self.line_width,
            opacity=self.opacity,
            circle_diameter_mode=self.circle_diameter_mode,
            text_options=TextOptions(
                font_size=self.text_font_size,
                font_family=self.text_font_family,
            ),
        )


class AnnotationEngine(QObject):
    """
    Interactive annotation engine for one page of one document.

    Signals:
        state_changed: Anything visible changed; the host should repaint.
        selection_changed: Selected ids changed (list of str).
        tool_changed: The active tool changed (ToolType).
        text_edit_requested: An inline editor should open (TextEditSession).
        text_edit_closed: The inline editor should close.
    """

    state_changed = Signal()
    selection_changed = Signal(list)
    tool_changed = Signal(object)
    text_edit_requested = Signal(object)
    text_edit_closed = Signal()

    def __init__(
        self,
        store: AnnotationStore,
        document_id: str,
        page_number: int = 1,
        config: Optional[ConfigService] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self._store = store
        self._document_id = document_id
        self._page_number = page_number

        self.settings = EngineSettings.from_config(config) if config else EngineSettings()
        scroll_settings = AutoScrollSettings.from_config(config) if config else AutoScrollSettings()

        # Page content
        self._annotations: List[Annotation] = []
        self._selection = SelectionManager()

        # Inputs from the host
        self._view = ViewState()
        self._style = self.settings.default_style()
        self._tool: ToolBase = create_tool(ToolType.SELECT)

        # Interaction state
        self._gesture = GestureState()
        self._transform = CoordinateTransform()
        self._text_session: Optional[TextEditSession] = None
        self._hover: Optional[QPointF] = None

        self.scroll_handler: Optional[ScrollHandler] = None
        self._auto_scroll = AutoScrollController(
            scroll_settings,
            scroll_handler=self._scroll_view,
            drag_handler=self._follow_scroll,
            parent=self,
        )

        self.refresh()

    # ─── Properties ───────────────────────────────────────────────────────

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def page_number(self) -> int:
        return self._page_number

    @property
    def annotations(self) -> List[Annotation]:
        """Page annotations in paint order."""
        return list(self._annotations)

    @property
    def selection(self) -> SelectionManager:
        return self._selection

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def style(self) -> AnnotationStyle:
        return self._style

    @property
    def tool(self) -> ToolBase:
        return self._tool

    @property
    def tool_type(self) -> ToolType:
        return self._tool.tool_type

    @property
    def gesture(self) -> GestureState:
        return self._gesture

    @property
    def is_selecting(self) -> bool:
        return self._gesture.mode == GestureMode.SELECTING

    @property
    def is_moving(self) -> bool:
        return self._gesture.mode == GestureMode.MOVING

    @property
    def is_resizing(self) -> bool:
        return self._gesture.mode == GestureMode.RESIZING

    @property
    def mode(self) -> GestureMode:
        """Current state; an open text edit counts when no gesture runs."""
        if self._gesture.mode == GestureMode.IDLE and self._text_session is not None:
            return GestureMode.EDITING_TEXT
        return self._gesture.mode

    @property
    def text_session(self) -> Optional[TextEditSession]:
        return self._text_session

    @property
    def auto_scroll(self) -> AutoScrollController:
        return self._auto_scroll

    @property
    def handle_tolerance(self) -> float:
        return self.settings.handle_tolerance

    @property
    def freehand_min_distance(self) -> float:
        return self.settings.freehand_min_distance

    def find(self, annotation_id: str) -> Optional[Annotation]:
        return next((a for a in self._annotations if a.id == annotation_id), None)

    def notify_changed(self) -> None:
        self.state_changed.emit()

    # ─── Host Inputs ──────────────────────────────────────────────────────

    def set_view_state(self, view: ViewState) -> None:
        """Take the renderer's current scale, scroll and viewport size."""
        if view.scale <= 0:
            raise ValueError(f"Scale must be positive, got {view.scale}")
        self._view = view
        self.state_changed.emit()

    def set_tool(self, tool_type: ToolType) -> None:
        if tool_type == self._tool.tool_type:
            return

        self._tool.on_deactivate(self)
        self._reset_gesture()
        self._auto_scroll.stop()

        self._tool = create_tool(tool_type)
        if tool_type != ToolType.SELECT and self._selection:
            self._selection.clear()
            self.selection_changed.emit([])

        self._logger.info(f"Tool changed to {tool_type.name}")
        self.tool_changed.emit(tool_type)
        self.state_changed.emit()

    def set_style(self, style: AnnotationStyle) -> None:
        """Style used for annotations created from now on."""
        self._style = style.clone()
        self.state_changed.emit()

    def set_page(self, page_number: int) -> None:
        if page_number == self._page_number:
            return
        self._reset_gesture()
        self._auto_scroll.stop()
        self._close_text_session()
        self._selection.clear()
        self._page_number = page_number
        self._logger.info(f"Page changed to {page_number}")
        self.selection_changed.emit([])
        self.refresh()

    def refresh(self) -> None:
        """Reload the page's annotations from the store."""
        self._annotations = self._store.list_annotations(self._document_id, self._page_number)
        before = self._selection.ids
        self._selection.resync(self._annotations)
        if self._text_session and self.find(self._text_session.annotation_id) is None:
            self._close_text_session()

        self._logger.debug(
            f"Loaded {len(self._annotations)} annotations for "
            f"{self._document_id} page {self._page_number}"
        )
        if self._selection.ids != before:
            self.selection_changed.emit(self._selection.ids)
        self.state_changed.emit()

    def shutdown(self) -> None:
        """Stop timers before the host goes away."""
        self._auto_scroll.stop()
        self._reset_gesture()

    # ─── Pointer Input ────────────────────────────────────────────────────

    def map_to_document(self, viewport_point: QPointF) -> QPointF:
        return self._transform.map(viewport_point, self._view)

    def map_to_viewport(self, point: QPointF) -> QPointF:
        return self._transform.to_viewport(point, self._view)

    def pointer_down(self, viewport_point: QPointF, modifiers=NO_MODIFIERS) -> None:
        """Primary button pressed at a scroll-viewport position."""
        if self._gesture.mode != GestureMode.IDLE:
            self._logger.debug("Pointer down ignored, gesture already active")
            return
        if self._text_session is not None:
            self.cancel_text_edit()

        self._transform.begin_gesture(self._view)
        point = self.map_to_document(viewport_point)
        self._hover = point
        try:
            self._tool.on_mouse_press(point, self, modifiers)
        finally:
            if self._gesture.mode == GestureMode.IDLE:
                self._transform.end_gesture()
            self.state_changed.emit()

    def pointer_move(self, viewport_point: QPointF, modifiers=NO_MODIFIERS) -> None:
        """Pointer moved, with or without a gesture in progress."""
        point = self.map_to_document(viewport_point)
        self._hover = point
        if self._gesture.mode == GestureMode.IDLE:
            return

        self._tool.on_mouse_move(point, self, modifiers)

        view = self._view
        if (
            self._gesture.mode == GestureMode.MOVING
            and self._selection
            and view.viewport_width > 0
            and view.viewport_height > 0
        ):
            self._auto_scroll.update_pointer(
                viewport_point,
                view.viewport_width,
                view.viewport_height,
            )

    def pointer_up(self, viewport_point: QPointF, modifiers=NO_MODIFIERS) -> None:
        if self._gesture.mode == GestureMode.IDLE:
            return
        point = self.map_to_document(viewport_point)
        try:
            self._tool.on_mouse_release(point, self, modifiers)
        finally:
            self._reset_gesture()
            self._auto_scroll.release()
            self.state_changed.emit()

    def pointer_leave(self) -> None:
        """Pointer left the page surface."""
        self._hover = None
        if self._gesture.mode == GestureMode.IDLE:
            self.state_changed.emit()
            return
        try:
            self._tool.on_mouse_leave(self)
        finally:
            self._logger.debug(f"Gesture {self._gesture.mode.name} ended by pointer leave")
            self._reset_gesture()
            self._auto_scroll.stop()
            self.state_changed.emit()

    def double_click(self, viewport_point: QPointF) -> None:
        """Re-open the editor on the topmost text or sticky note under the point."""
        if self._text_session is not None:
            return
        point = self.map_to_document(viewport_point)
        for annotation in reversed(self._annotations):
            if annotation.is_text_like and hit_test(point, [annotation], self._view.scale):
                self._selection.select(annotation)
                self.selection_changed.emit(self._selection.ids)
                self.open_text_editor(annotation)
                return

    def context_select(self, viewport_point: QPointF, add: bool = False) -> Optional[Annotation]:
        """Select the annotation under a secondary click, or clear on empty space."""
        if self._gesture.mode != GestureMode.IDLE:
            return None
        point = self.map_to_document(viewport_point)
        hit = hit_test(point, self._annotations, self._view.scale)
        if hit is not None:
            self._selection.select(hit, add=add)
        elif not add:
            self._selection.clear()
        self.selection_changed.emit(self._selection.ids)
        self.state_changed.emit()
        return hit

    def cursor_hint(self, viewport_point: QPointF) -> CursorHint:
        tool_type = self._tool.tool_type
        if tool_type == ToolType.DRAG:
            return CursorHint.GRAB
        if tool_type in (ToolType.TEXT, ToolType.STICKY_NOTE):
            return CursorHint.TEXT
        if tool_type != ToolType.SELECT:
            return CursorHint.CROSSHAIR

        mode = self._gesture.mode
        if mode == GestureMode.MOVING:
            return CursorHint.MOVE
        if mode == GestureMode.RESIZING and self._gesture.handle is not None:
            return _HANDLE_CURSORS[self._gesture.handle]

        point = self.map_to_document(viewport_point)
        scale = self._view.scale
        selected = self._selection.single
        if selected is not None:
            handle = hit_resize_handle(point, selected, scale, self.handle_tolerance)
            if handle is not None:
                return _HANDLE_CURSORS[handle]
        if hit_test(point, self._annotations, scale) is not None:
            return CursorHint.MOVE
        return CursorHint.DEFAULT

    # ─── Gestures (called by tools) ───────────────────────────────────────

    def begin_drawing(self, points: List[QPointF], freehand: bool) -> None:
        self._gesture.mode = GestureMode.DRAWING_FREEHAND if freehand else GestureMode.DRAWING_SHAPE
        self._gesture.annotation_type = self._tool.tool_type.annotation_type
        self._gesture.points = points
        self._gesture.last_sample_scroll = self._view.scroll
        self._logger.debug(f"Started drawing {self._gesture.annotation_type.value}")

    def begin_move(self, point: QPointF) -> None:
        self._gesture.mode = GestureMode.MOVING
        self._gesture.move_offset = QPointF(point)
        self._snapshot_selection()
        self._logger.debug(f"Started moving {len(self._selection)} annotations")

    def begin_resize(self, handle: ResizeHandle) -> None:
        self._gesture.mode = GestureMode.RESIZING
        self._gesture.handle = handle
        self._snapshot_selection()
        self._logger.debug(f"Started resize from {handle.value}")

    def begin_rubber_band(self, point: QPointF) -> None:
        self._gesture.mode = GestureMode.SELECTING
        self._gesture.band_start = QPointF(point)
        self._gesture.band_end = QPointF(point)
        if self._selection:
            self._selection.clear()
            self.selection_changed.emit([])

    def update_rubber_band(self, point: QPointF) -> None:
        gesture = self._gesture
        if gesture.band_start is None:
            return
        gesture.band_end = QPointF(point)
        before = self._selection.ids
        self._selection.set(annotations_in_box(self._annotations, gesture.band_start, point))
        if self._selection.ids != before:
            self.selection_changed.emit(self._selection.ids)
        self.state_changed.emit()

    def select(self, annotation: Optional[Annotation], add: bool = False) -> None:
        self._selection.select(annotation, add=add)
        self.selection_changed.emit(self._selection.ids)
        self.state_changed.emit()

    def move_selection_to(self, point: QPointF) -> None:
        """Move the selection by the pointer delta since the last move."""
        offset = self._gesture.move_offset
        if offset is None:
            return
        self.translate_selection(point.x() - offset.x(), point.y() - offset.y())
        self._gesture.move_offset = QPointF(point)

    def translate_selection(self, dx: float, dy: float) -> None:
        """Apply one document-space delta to every selected annotation."""
        if not self._selection or (dx == 0 and dy == 0):
            return
        translate_all(self._selection.annotations, dx, dy)
        if self._gesture.mode == GestureMode.IDLE:
            for annotation in self._selection.annotations:
                self._persist("update", self._store.update_annotation, annotation)
        else:
            self._gesture.changed = True
        self.state_changed.emit()

    def resize_selection(self, point: QPointF, uniform: bool = False) -> None:
        """Drag the active handle of the single selected annotation to a point."""
        annotation = self._selection.single
        handle = self._gesture.handle
        if annotation is None or not is_valid_resize(annotation, handle):
            self._logger.debug(f"Ignoring resize with handle {handle}")
            return
        annotation.points = resized_points(
            annotation,
            handle,
            point,
            uniform=uniform,
            min_size=self.settings.resize_min_size,
        )
        self._gesture.uniform = uniform and annotation.type == AnnotationType.CIRCLE
        self._gesture.changed = True
        self.state_changed.emit()

    def commit_transform(self) -> None:
        """Persist the selection after a move or resize that changed it."""
        if self._gesture.mode not in (GestureMode.MOVING, GestureMode.RESIZING):
            return
        if not self._gesture.changed:
            return
        self._gesture.changed = False
        for annotation in self._selection.annotations:
            self._persist("update", self._store.update_annotation, annotation)
        self._logger.info(f"Updated {len(self._selection)} annotations")

    def restore_transform(self) -> None:
        """Put the selection back where it was before an unfinished move or resize."""
        if self._gesture.mode not in (GestureMode.MOVING, GestureMode.RESIZING):
            return
        if not self._gesture.changed:
            return
        self._gesture.changed = False
        for annotation in self._selection.annotations:
            original = self._gesture.original_points.get(annotation.id)
            if original is not None:
                annotation.points = [QPointF(p) for p in original]
        self._logger.debug(f"Restored {len(self._selection)} annotations")
        self.state_changed.emit()

    def commit_preview(self) -> Optional[Annotation]:
        """
        Commit the drawing in progress.

        Returns:
            The new annotation, or None when the preview was discarded.
        """
        gesture = self._gesture
        annotation_type = gesture.annotation_type
        points = gesture.points
        gesture.points = []

        if annotation_type is None:
            return None
        if len(points) < 2:
            self._logger.debug(
                f"Discarded {annotation_type.value} preview with {len(points)} points"
            )
            return None

        annotation = Annotation(
            type=annotation_type,
            points=[QPointF(p) for p in points],
            style=self._style.clone(),
            page_number=self._page_number,
            author_id=self.settings.author_id,
        )
        self.add_annotation(annotation)
        return annotation

    # ─── Annotation Creation ──────────────────────────────────────────────

    def create_text_annotation(self, annotation_type: AnnotationType, point: QPointF) -> Annotation:
        """Text box or sticky note centered on a point."""
        style = self._style.clone()
        if annotation_type == AnnotationType.STICKY_NOTE:
            width, height = self.settings.sticky_box
            style.color = QColor("#000000")
            style.background_color = QColor(self.settings.sticky_background)
        else:
            width, height = self.settings.text_box

        return Annotation(
            type=annotation_type,
            points=[QPointF(point.x() - width / 2, point.y() - height / 2)],
            style=style,
            page_number=self._page_number,
            author_id=self.settings.author_id,
            text=self.settings.default_text,
            width=width,
            height=height,
        )

    def create_stamp_annotation(self, annotation_type: AnnotationType, point: QPointF) -> Annotation:
        style = self._style.clone()
        style.color = QColor(STAMP_COLORS[annotation_type])
        style.stamp_kind = STAMP_KINDS[annotation_type]
        return Annotation(
            type=annotation_type,
            points=[QPointF(point)],
            style=style,
            page_number=self._page_number,
            author_id=self.settings.author_id,
        )

    def add_annotation(self, annotation: Annotation) -> None:
        """Append to the page and hand to the store."""
        self._annotations.append(annotation)
        self._persist("add", self._store.add_annotation, annotation)
        self._logger.info(f"Added {annotation.type.value} annotation {annotation.id}")
        self.state_changed.emit()

    def delete_selected(self) -> int:
        """Delete every selected annotation. Returns how many were removed."""
        if self._gesture.mode != GestureMode.IDLE:
            return 0
        selected = self._selection.annotations
        if not selected:
            return 0

        self._selection.clear()
        self.selection_changed.emit([])
        ids = {a.id for a in selected}
        self._annotations = [a for a in self._annotations if a.id not in ids]
        try:
            for annotation in selected:
                self._persist("delete", self._store.delete_annotation, annotation.id)
        finally:
            self.state_changed.emit()

        self._logger.info(f"Deleted {len(selected)} annotations")
        return len(selected)

    # ─── Text Editing ─────────────────────────────────────────────────────

    def open_text_editor(self, annotation: Annotation) -> None:
        self._text_session = TextEditSession(
            annotation_id=annotation.id,
            anchor=QPointF(annotation.points[0]),
            text=annotation.text,
        )
        self._logger.debug(f"Editing text of {annotation.id}")
        self.text_edit_requested.emit(self._text_session)
        self.state_changed.emit()

    def complete_text_edit(self, text: str) -> None:
        """Store the edited text. Empty text deletes the annotation."""
        session = self._text_session
        if session is None:
            return
        self._close_text_session()

        annotation = self.find(session.annotation_id)
        if annotation is None:
            return

        if not text.strip():
            self._selection.remove(annotation.id)
            self._annotations.remove(annotation)
            self.selection_changed.emit(self._selection.ids)
            self.state_changed.emit()
            self._persist("delete", self._store.delete_annotation, annotation.id)
            return

        annotation.text = text
        if annotation.type == AnnotationType.TEXT:
            width, height = measure_text_box(annotation)
            annotation.width = max(width, annotation.width or 0)
            annotation.height = max(height, annotation.height or 0)
        self.state_changed.emit()
        self._persist("update", self._store.update_annotation, annotation)

    def cancel_text_edit(self) -> None:
        if self._text_session is None:
            return
        self._close_text_session()
        self.state_changed.emit()

    def _close_text_session(self) -> None:
        if self._text_session is None:
            return
        self._text_session = None
        self.text_edit_closed.emit()

    # ─── Rendering ────────────────────────────────────────────────────────

    def render_state(self) -> RenderState:
        gesture = self._gesture
        tool_type = self._tool.tool_type

        preview = None
        if gesture.mode in (GestureMode.DRAWING_SHAPE, GestureMode.DRAWING_FREEHAND) and gesture.points:
            preview = Annotation(
                type=gesture.annotation_type,
                points=list(gesture.points),
                style=self._style,
                page_number=self._page_number,
            )

        band = None
        if gesture.mode == GestureMode.SELECTING and gesture.band_start and gesture.band_end:
            band = Bounds.from_corners(gesture.band_start, gesture.band_end)

        uniform_center = None
        selected = self._selection.single
        if gesture.uniform and selected is not None and len(selected.points) >= 2:
            uniform_center, _ = circle_geometry(
                selected.points[0],
                selected.points[1],
                selected.style.circle_diameter_mode,
            )

        armed_preview = None
        if tool_type in (ToolType.TEXT, ToolType.STICKY_NOTE) and self._hover is not None:
            armed_preview = self.create_text_annotation(tool_type.annotation_type, self._hover)

        return RenderState(
            annotations=list(self._annotations),
            selected_ids=self._selection.ids,
            scale=self._view.scale,
            preview=preview,
            band=band,
            editing_id=self._text_session.annotation_id if self._text_session else None,
            armed_preview=armed_preview,
            pointer=QPointF(self._hover) if self._hover is not None else None,
            uniform_center=uniform_center,
        )

    # ─── Internals ────────────────────────────────────────────────────────

    def _persist(self, action: str, call, *args) -> None:
        try:
            call(self._document_id, *args)
        except AnnotationStoreError as e:
            self._logger.error(f"Store {action} failed for {self._document_id}: {e}")
            raise

    def _reset_gesture(self) -> None:
        self._gesture = GestureState()
        self._transform.end_gesture()

    def _snapshot_selection(self) -> None:
        self._gesture.original_points = {
            a.id: [QPointF(p) for p in a.points] for a in self._selection.annotations
        }

    def _scroll_view(self, dx: float, dy: float) -> Optional[Tuple[float, float]]:
        if self.scroll_handler is None:
            return None
        return self.scroll_handler(dx, dy)

    def _follow_scroll(self, dx: float, dy: float) -> None:
        # Keep the dragged selection under the pointer while the view scrolls
        if self._gesture.mode != GestureMode.MOVING:
            return
        ratio_x, ratio_y = self._view.surface_ratio
        scale = self._view.scale
        doc_dx = dx * ratio_x / scale
        doc_dy = dy * ratio_y / scale
        self.translate_selection(doc_dx, doc_dy)
        offset = self._gesture.move_offset
        if offset is not None:
            self._gesture.move_offset = QPointF(offset.x() + doc_dx, offset.y() + doc_dy)
