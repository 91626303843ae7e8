"""
Annotation model for pagemark.

An annotation is plain data: a type tag, an ordered list of document-space
points and a style. Behavior that depends on the type (hit-testing,
painting, resize handles) lives in dispatch tables keyed by AnnotationType
in the modules that need it, so this module stays free of painting code.

Point semantics by type:
- freehand, polygonal highlight: arbitrary-length path
- line, arrow, shapes, rectangular highlight: two points (start, end)
- circle: center + perimeter point, or diameter ends (style flag)
- text, stickyNote, stamps: a single anchor point
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from PySide6.QtCore import QPointF
from PySide6.QtGui import QColor


class AnnotationType(Enum):
    """Annotation types. Values are the persisted type names."""
    FREEHAND = "freehand"
    LINE = "line"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    TRIANGLE = "triangle"
    STAR = "star"
    ARROW = "arrow"
    DOUBLE_ARROW = "doubleArrow"
    HIGHLIGHT = "highlight"
    TEXT = "text"
    STICKY_NOTE = "stickyNote"
    STAMP = "stamp"
    STAMP_APPROVED = "stampApproved"
    STAMP_REJECTED = "stampRejected"
    STAMP_REVISION = "stampRevision"


STAMP_TYPES = frozenset({
    AnnotationType.STAMP,
    AnnotationType.STAMP_APPROVED,
    AnnotationType.STAMP_REJECTED,
    AnnotationType.STAMP_REVISION,
})

TEXT_TYPES = frozenset({AnnotationType.TEXT, AnnotationType.STICKY_NOTE})

LINE_TYPES = frozenset({
    AnnotationType.LINE,
    AnnotationType.ARROW,
    AnnotationType.DOUBLE_ARROW,
})

# Label printed on the stamp and its stroke color
STAMP_KINDS: Dict[AnnotationType, str] = {
    AnnotationType.STAMP: "approved",
    AnnotationType.STAMP_APPROVED: "approved",
    AnnotationType.STAMP_REJECTED: "rejected",
    AnnotationType.STAMP_REVISION: "revision",
}

STAMP_COLORS: Dict[AnnotationType, str] = {
    AnnotationType.STAMP: "#00AA00",
    AnnotationType.STAMP_APPROVED: "#00AA00",
    AnnotationType.STAMP_REJECTED: "#FF0000",
    AnnotationType.STAMP_REVISION: "#0000FF",
}

# Stamp box at 100% size, document units
STAMP_WIDTH = 180.0
STAMP_HEIGHT = 50.0

STICKY_NOTE_SIZE = (200.0, 150.0)
TEXT_BOX_SIZE = (120.0, 40.0)


class ResizeHandle(Enum):
    """Resize handle identifiers, also used for resize cursors."""
    TOP_LEFT = "topLeft"
    TOP = "top"
    TOP_RIGHT = "topRight"
    RIGHT = "right"
    BOTTOM_RIGHT = "bottomRight"
    BOTTOM = "bottom"
    BOTTOM_LEFT = "bottomLeft"
    LEFT = "left"


CORNER_HANDLES = (
    ResizeHandle.TOP_LEFT,
    ResizeHandle.TOP_RIGHT,
    ResizeHandle.BOTTOM_LEFT,
    ResizeHandle.BOTTOM_RIGHT,
)

EDGE_HANDLES = (
    ResizeHandle.LEFT,
    ResizeHandle.RIGHT,
    ResizeHandle.TOP,
    ResizeHandle.BOTTOM,
)


@dataclass
class TextOptions:
    """Font options for text-like annotations."""
    font_size: int = 14
    font_family: str = "Arial"
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def clone(self) -> "TextOptions":
        return TextOptions(
            font_size=self.font_size,
            font_family=self.font_family,
            bold=self.bold,
            italic=self.italic,
            underline=self.underline,
        )


@dataclass
class AnnotationStyle:
    """
    Style properties for annotations.

    Shared across annotation types where applicable; type-specific flags
    are ignored by types that do not use them.
    """
    color: QColor = field(default_factory=lambda: QColor("#000000"))
    line_width: float = 2
    opacity: float = 1.0  # 0.0 to 1.0
    circle_diameter_mode: bool = False
    background_color: Optional[QColor] = None
    stamp_size: float = 100  # percent
    stamp_kind: Optional[str] = None
    text_options: TextOptions = field(default_factory=TextOptions)

    def clone(self) -> "AnnotationStyle":
        """Create a copy of this style."""
        return AnnotationStyle(
            color=QColor(self.color),
            line_width=self.line_width,
            opacity=self.opacity,
            circle_diameter_mode=self.circle_diameter_mode,
            background_color=QColor(self.background_color) if self.background_color else None,
            stamp_size=self.stamp_size,
            stamp_kind=self.stamp_kind,
            text_options=self.text_options.clone(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "color": self.color.name(),
            "lineWidth": self.line_width,
            "opacity": self.opacity,
            "circleDiameterMode": self.circle_diameter_mode,
            "backgroundColor": self.background_color.name() if self.background_color else None,
            "stampSize": self.stamp_size,
            "stampType": self.stamp_kind,
            "textOptions": {
                "fontSize": self.text_options.font_size,
                "fontFamily": self.text_options.font_family,
                "bold": self.text_options.bold,
                "italic": self.text_options.italic,
                "underline": self.text_options.underline,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationStyle":
        options = data.get("textOptions") or {}
        background = data.get("backgroundColor")
        return cls(
            color=QColor(data.get("color", "#000000")),
            line_width=data.get("lineWidth", 2),
            opacity=data.get("opacity", 1.0),
            circle_diameter_mode=bool(data.get("circleDiameterMode", False)),
            background_color=QColor(background) if background else None,
            stamp_size=data.get("stampSize", 100),
            stamp_kind=data.get("stampType"),
            text_options=TextOptions(
                font_size=options.get("fontSize", 14),
                font_family=options.get("fontFamily", "Arial"),
                bold=options.get("bold", False),
                italic=options.get("italic", False),
                underline=options.get("underline", False),
            ),
        )


@dataclass
class Annotation:
    """
    A persisted unit of markup anchored to one page.

    Width and height are only meaningful for text and sticky notes, where
    they give an explicit box size in document units.
    """
    type: AnnotationType
    points: List[QPointF]
    style: AnnotationStyle = field(default_factory=AnnotationStyle)
    page_number: int = 1
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: float = field(default_factory=time.time)
    author_id: str = ""
    version: int = 1
    text: str = ""
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def is_stamp(self) -> bool:
        return self.type in STAMP_TYPES

    @property
    def is_text_like(self) -> bool:
        return self.type in TEXT_TYPES

    def clone(self) -> "Annotation":
        """Deep copy, keeping the same id."""
        return Annotation(
            type=self.type,
            points=[QPointF(p) for p in self.points],
            style=self.style.clone(),
            page_number=self.page_number,
            id=self.id,
            timestamp=self.timestamp,
            author_id=self.author_id,
            version=self.version,
            text=self.text,
            width=self.width,
            height=self.height,
        )

    def translate(self, dx: float, dy: float) -> None:
        """Move every point by the same delta."""
        self.points = [QPointF(p.x() + dx, p.y() + dy) for p in self.points]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "points": [{"x": p.x(), "y": p.y()} for p in self.points],
            "style": self.style.to_dict(),
            "pageNumber": self.page_number,
            "timestamp": self.timestamp,
            "userId": self.author_id,
            "version": self.version,
        }
        if self.text:
            data["text"] = self.text
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        return cls(
            type=AnnotationType(data["type"]),
            points=[QPointF(p["x"], p["y"]) for p in data.get("points", [])],
            style=AnnotationStyle.from_dict(data.get("style") or {}),
            page_number=data.get("pageNumber", 1),
            id=data["id"],
            timestamp=data.get("timestamp", time.time()),
            author_id=data.get("userId", ""),
            version=data.get("version", 1),
            text=data.get("text", ""),
            width=data.get("width"),
            height=data.get("height"),
        )
