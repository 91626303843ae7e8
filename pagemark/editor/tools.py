"""
Tool framework and implementations for the annotation engine.

Each tool turns pointer events (already converted to document space) into
engine operations. Tools hold no gesture state of their own; everything
that lives for one pointer-down to pointer-up cycle is in the engine's
GestureState.

Tools:
- SelectTool: select, rubber-band, move and resize annotations
- DragTool: leaves the pointer to the host for panning
- ShapeTool: two-point drag to draw lines, arrows, shapes and highlights
- FreehandTool: path with a minimum sample distance
- TextTool: creates a text box or sticky note on click and opens the editor
- StampTool: places a stamp on click
"""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import TYPE_CHECKING, Dict, Optional

from PySide6.QtCore import QPointF, Qt

from pagemark.editor.annotations import AnnotationType
from pagemark.editor.geometry import distance
from pagemark.editor.hit_testing import hit_resize_handle, hit_test, point_in_annotation
from pagemark.services.logging_service import get_logger

if TYPE_CHECKING:
    from pagemark.editor.engine import AnnotationEngine


class ToolType(Enum):
    """Enum for tool types."""
    SELECT = auto()
    DRAG = auto()
    FREEHAND = auto()
    LINE = auto()
    RECTANGLE = auto()
    CIRCLE = auto()
    TRIANGLE = auto()
    STAR = auto()
    ARROW = auto()
    DOUBLE_ARROW = auto()
    HIGHLIGHT = auto()
    TEXT = auto()
    STICKY_NOTE = auto()
    STAMP = auto()
    STAMP_APPROVED = auto()
    STAMP_REJECTED = auto()
    STAMP_REVISION = auto()

    @property
    def annotation_type(self) -> Optional[AnnotationType]:
        """The annotation type this tool creates, None for select and drag."""
        return TOOL_ANNOTATION_TYPES.get(self)

    @classmethod
    def from_name(cls, name: str) -> "ToolType":
        """Look up a tool by its toolbar name ("select", "stickyNote", ...)."""
        if name == "select":
            return cls.SELECT
        if name == "drag":
            return cls.DRAG
        annotation_type = AnnotationType(name)
        for tool_type, created in TOOL_ANNOTATION_TYPES.items():
            if created == annotation_type:
                return tool_type
        raise ValueError(f"Unknown tool name: {name}")


TOOL_ANNOTATION_TYPES: Dict[ToolType, AnnotationType] = {
    ToolType.FREEHAND: AnnotationType.FREEHAND,
    ToolType.LINE: AnnotationType.LINE,
    ToolType.RECTANGLE: AnnotationType.RECTANGLE,
    ToolType.CIRCLE: AnnotationType.CIRCLE,
    ToolType.TRIANGLE: AnnotationType.TRIANGLE,
    ToolType.STAR: AnnotationType.STAR,
    ToolType.ARROW: AnnotationType.ARROW,
    ToolType.DOUBLE_ARROW: AnnotationType.DOUBLE_ARROW,
    ToolType.HIGHLIGHT: AnnotationType.HIGHLIGHT,
    ToolType.TEXT: AnnotationType.TEXT,
    ToolType.STICKY_NOTE: AnnotationType.STICKY_NOTE,
    ToolType.STAMP: AnnotationType.STAMP,
    ToolType.STAMP_APPROVED: AnnotationType.STAMP_APPROVED,
    ToolType.STAMP_REJECTED: AnnotationType.STAMP_REJECTED,
    ToolType.STAMP_REVISION: AnnotationType.STAMP_REVISION,
}


class ToolBase(ABC):
    """
    Base class for all tools.

    Tools receive document-space points and manipulate annotations through
    the engine.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    @property
    @abstractmethod
    def tool_type(self) -> ToolType:
        """Return the type of this tool."""
        pass

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.CrossCursor

    @abstractmethod
    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer-down."""
        pass

    def on_mouse_move(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer-move while the button is down."""
        pass

    def on_mouse_release(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        """Handle pointer-up. The engine resets gesture state afterwards."""
        pass

    def on_mouse_leave(self, engine: "AnnotationEngine") -> None:
        """Pointer left the surface. The active gesture is abandoned by default."""
        pass

    def on_deactivate(self, engine: "AnnotationEngine") -> None:
        """Called when another tool is selected."""
        pass


class SelectTool(ToolBase):
    """
    Select tool.

    - Click a selected annotation: resize from a handle, or move
    - Click an unselected annotation: select it alone and move it
    - Drag on empty space: rubber-band selection
    """

    @property
    def tool_type(self) -> ToolType:
        return ToolType.SELECT

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.ArrowCursor

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        scale = engine.view.scale
        selected = engine.selection.annotations

        clicked = next(
            (a for a in reversed(selected) if point_in_annotation(pos, a, scale)),
            None,
        )
        if clicked is not None:
            # Handles can sit inside the shape, so they win over moving
            if len(selected) == 1:
                handle = hit_resize_handle(pos, clicked, scale, engine.handle_tolerance)
                if handle is not None:
                    engine.begin_resize(handle)
                    return
            engine.begin_move(pos)
            return

        hit = hit_test(pos, engine.annotations, scale)
        if hit is not None:
            engine.select(hit)
            engine.begin_move(pos)
            return

        engine.begin_rubber_band(pos)

    def on_mouse_move(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        if engine.is_selecting:
            engine.update_rubber_band(pos)
        elif engine.is_resizing:
            uniform = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
            engine.resize_selection(pos, uniform)
        elif engine.is_moving:
            engine.move_selection_to(pos)

    def on_mouse_release(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        engine.commit_transform()

    def on_mouse_leave(self, engine: "AnnotationEngine") -> None:
        engine.restore_transform()


class DragTool(ToolBase):
    """Hand tool. Annotation operations are disabled; the host pans."""

    @property
    def tool_type(self) -> ToolType:
        return ToolType.DRAG

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.OpenHandCursor

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        pass


class ShapeTool(ToolBase):
    """
    Drag-to-draw tool for two-point annotations.

    The first point stays where the drag started and the second follows
    the pointer. A drag without movement still commits.
    """

    def __init__(self, tool_type: ToolType) -> None:
        super().__init__()
        self._tool_type = tool_type

    @property
    def tool_type(self) -> ToolType:
        return self._tool_type

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        engine.begin_drawing([QPointF(pos), QPointF(pos)], freehand=False)

    def on_mouse_move(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        points = engine.gesture.points
        if points:
            engine.gesture.points = [points[0], QPointF(pos)]
            engine.notify_changed()

    def on_mouse_release(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        engine.commit_preview()


class FreehandTool(ToolBase):
    """
    Freehand drawing tool.

    Records a new sample only when it is at least min_distance away from
    the previous one, or when the view scrolled since the previous sample.
    """

    @property
    def tool_type(self) -> ToolType:
        return ToolType.FREEHAND

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        engine.begin_drawing([QPointF(pos)], freehand=True)

    def on_mouse_move(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        gesture = engine.gesture
        if not gesture.points:
            return

        scroll = engine.view.scroll
        scrolled = gesture.last_sample_scroll is not None and scroll != gesture.last_sample_scroll
        if distance(gesture.points[-1], pos) >= engine.freehand_min_distance or scrolled:
            gesture.points.append(QPointF(pos))
            gesture.last_sample_scroll = scroll
            engine.notify_changed()

    def on_mouse_release(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        engine.commit_preview()

    def on_mouse_leave(self, engine: "AnnotationEngine") -> None:
        # Keep the stroke instead of losing it at the surface edge
        if len(engine.gesture.points) >= 2:
            engine.commit_preview()


class TextTool(ToolBase):
    """
    Text box and sticky note tool.

    Clicking creates the annotation right away, centered on the click,
    switches back to the select tool and opens the inline editor.
    """

    def __init__(self, tool_type: ToolType) -> None:
        super().__init__()
        self._tool_type = tool_type

    @property
    def tool_type(self) -> ToolType:
        return self._tool_type

    @property
    def cursor(self) -> Qt.CursorShape:
        return Qt.CursorShape.IBeamCursor

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        annotation = engine.create_text_annotation(self._tool_type.annotation_type, pos)
        engine.add_annotation(annotation)
        engine.set_tool(ToolType.SELECT)
        engine.open_text_editor(annotation)


class StampTool(ToolBase):
    """Places a stamp centered on the click."""

    def __init__(self, tool_type: ToolType) -> None:
        super().__init__()
        self._tool_type = tool_type

    @property
    def tool_type(self) -> ToolType:
        return self._tool_type

    def on_mouse_press(
        self,
        pos: QPointF,
        engine: "AnnotationEngine",
        modifiers: Qt.KeyboardModifier
    ) -> None:
        annotation = engine.create_stamp_annotation(self._tool_type.annotation_type, pos)
        engine.add_annotation(annotation)


def create_tool(tool_type: ToolType) -> ToolBase:
    """
    Factory function to create tools by type.

    Args:
        tool_type: The type of tool to create.

    Returns:
        A new instance of the requested tool.
    """
    tool_factories = {
        ToolType.SELECT: SelectTool,
        ToolType.DRAG: DragTool,
        ToolType.FREEHAND: FreehandTool,
        ToolType.LINE: lambda: ShapeTool(ToolType.LINE),
        ToolType.RECTANGLE: lambda: ShapeTool(ToolType.RECTANGLE),
        ToolType.CIRCLE: lambda: ShapeTool(ToolType.CIRCLE),
        ToolType.TRIANGLE: lambda: ShapeTool(ToolType.TRIANGLE),
        ToolType.STAR: lambda: ShapeTool(ToolType.STAR),
        ToolType.ARROW: lambda: ShapeTool(ToolType.ARROW),
        ToolType.DOUBLE_ARROW: lambda: ShapeTool(ToolType.DOUBLE_ARROW),
        ToolType.HIGHLIGHT: lambda: ShapeTool(ToolType.HIGHLIGHT),
        ToolType.TEXT: lambda: TextTool(ToolType.TEXT),
        ToolType.STICKY_NOTE: lambda: TextTool(ToolType.STICKY_NOTE),
        ToolType.STAMP: lambda: StampTool(ToolType.STAMP),
        ToolType.STAMP_APPROVED: lambda: StampTool(ToolType.STAMP_APPROVED),
        ToolType.STAMP_REJECTED: lambda: StampTool(ToolType.STAMP_REJECTED),
        ToolType.STAMP_REVISION: lambda: StampTool(ToolType.STAMP_REVISION),
    }

    if tool_type not in tool_factories:
        raise ValueError(f"Unknown tool type: {tool_type}")

    return tool_factories[tool_type]()
