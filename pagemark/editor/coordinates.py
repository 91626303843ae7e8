"""
Viewport to document coordinate conversion.

Pointer positions arrive in the scroll viewport's coordinates. Converting
them to document space needs three corrections:
- the ratio between the surface's backing resolution and displayed size
- the current zoom scale
- the scroll drift accumulated since the current gesture began

The surface origin and scroll position are captured once per gesture so
that a stroke stays continuous while the view auto-scrolls underneath it.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from PySide6.QtCore import QPointF


@dataclass(frozen=True)
class ViewState:
    """
    Read-only view inputs supplied by the page renderer.

    surface_x/surface_y give the page surface's offset inside the scrolled
    content, so its on-screen origin is (surface - scroll).
    """
    scale: float = 1.0
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    viewport_width: float = 0.0
    viewport_height: float = 0.0
    surface_x: float = 0.0
    surface_y: float = 0.0
    surface_ratio: Tuple[float, float] = (1.0, 1.0)

    @property
    def scroll(self) -> QPointF:
        return QPointF(self.scroll_x, self.scroll_y)

    @property
    def surface_origin(self) -> QPointF:
        return QPointF(self.surface_x - self.scroll_x, self.surface_y - self.scroll_y)


def to_document_space(
    viewport_point: QPointF,
    scale: float,
    scroll_delta: QPointF = QPointF(0, 0),
    surface_ratio: Tuple[float, float] = (1.0, 1.0),
) -> QPointF:
    """
    Convert a surface-relative pointer position to document space.

    Args:
        viewport_point: Pointer position relative to the surface rectangle
            as it was at gesture start.
        scale: Current zoom scale, must be positive.
        scroll_delta: Scroll drift since the gesture began.
        surface_ratio: Backing size divided by displayed size, per axis.

    Raises:
        ValueError: If scale is not positive.
    """
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")
    ratio_x, ratio_y = surface_ratio
    return QPointF(
        (viewport_point.x() + scroll_delta.x()) * ratio_x / scale,
        (viewport_point.y() + scroll_delta.y()) * ratio_y / scale,
    )


def to_viewport(
    point: QPointF,
    scale: float,
    surface_ratio: Tuple[float, float] = (1.0, 1.0),
) -> QPointF:
    """Inverse of to_document_space with no scroll drift."""
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")
    ratio_x, ratio_y = surface_ratio
    return QPointF(
        point.x() * scale / ratio_x,
        point.y() * scale / ratio_y,
    )


class CoordinateTransform:
    """Maps viewport positions to document space, tracking the gesture baseline."""

    def __init__(self) -> None:
        self._scroll: Optional[QPointF] = None
        self._origin: Optional[QPointF] = None

    @property
    def in_gesture(self) -> bool:
        return self._scroll is not None

    def begin_gesture(self, view: ViewState) -> None:
        """Capture the baseline. Later calls within the same gesture are ignored."""
        if self._scroll is None:
            self._scroll = view.scroll
            self._origin = view.surface_origin

    def end_gesture(self) -> None:
        self._scroll = None
        self._origin = None

    def scroll_delta(self, scroll: QPointF) -> QPointF:
        if self._scroll is None:
            return QPointF(0, 0)
        return scroll - self._scroll

    def map(self, viewport_point: QPointF, view: ViewState) -> QPointF:
        """Convert a viewport position to document space for the current view."""
        origin = self._origin if self._origin is not None else view.surface_origin
        return to_document_space(
            viewport_point - origin,
            view.scale,
            self.scroll_delta(view.scroll),
            view.surface_ratio,
        )

    def to_viewport(self, point: QPointF, view: ViewState) -> QPointF:
        """Current viewport position of a document point."""
        return to_viewport(point, view.scale, view.surface_ratio) + view.surface_origin
