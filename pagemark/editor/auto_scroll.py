"""
Edge auto-scrolling while annotations are dragged.

When the pointer comes within a threshold of a viewport edge during a
move, the view scrolls toward that edge. Speed follows quadratic easing
on the distance to the edge, ramps up gradually, drops immediately when
the target is lower, and decays geometrically after the drag ends.

The velocity math is a set of pure functions; AutoScrollController owns
the frame timer and calls back into the host and the engine each frame.
"""

from dataclasses import dataclass, fields
from typing import Callable, Optional, Tuple

from PySide6.QtCore import QObject, QPointF, QTimer

from pagemark.services.config_service import ConfigService
from pagemark.services.logging_service import get_logger

# Scroll callbacks may return the delta actually applied, which can be
# smaller than requested at the ends of the scroll range
ScrollCallback = Callable[[float, float], Optional[Tuple[float, float]]]
DragCallback = Callable[[float, float], None]


@dataclass(frozen=True)
class AutoScrollSettings:
    threshold: float = 80
    max_speed: float = 15
    min_speed: float = 2
    acceleration: float = 0.2
    deceleration: float = 0.92
    stop_speed: float = 0.1
    frame_interval_ms: int = 16

    @classmethod
    def from_config(cls, config: ConfigService) -> "AutoScrollSettings":
        values = config.auto_scroll
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in values.items() if key in names})


# ─── Velocity Math ────────────────────────────────────────────────────────────

def target_speed(distance: float, threshold: float, max_speed: float) -> float:
    """Quadratic easing: zero at the threshold, max_speed at the edge."""
    if distance > threshold:
        return 0.0
    # Pointer past the edge scrolls at full speed
    distance = max(distance, 0.0)
    normalized = (threshold - distance) / threshold
    return normalized * normalized * max_speed


def next_speed(distance: float, current: float, settings: AutoScrollSettings) -> float:
    """
    Speed magnitude for the next frame.

    Ramps toward a higher target by the acceleration factor and snaps
    straight down to a lower one.
    """
    target = target_speed(distance, settings.threshold, settings.max_speed)
    magnitude = abs(current)
    if target > magnitude:
        return magnitude + (target - magnitude) * settings.acceleration
    return target


def axis_velocity(
    position: float,
    extent: float,
    current: float,
    settings: AutoScrollSettings,
) -> float:
    """
    Signed velocity along one axis.

    Args:
        position: Pointer coordinate relative to the viewport origin.
        extent: Viewport size along the axis.
        current: Velocity applied on the previous frame.
        settings: Tuning values.

    Returns:
        Negative toward the top/left edge, positive toward bottom/right,
        zero below the minimum speed.
    """
    to_start = position
    to_end = extent - position
    speed = next_speed(min(to_start, to_end), current, settings)
    if to_start < to_end:
        speed = -speed
    if abs(speed) < settings.min_speed:
        return 0.0
    return speed


def decay(velocity: Tuple[float, float], factor: float) -> Tuple[float, float]:
    return velocity[0] * factor, velocity[1] * factor


# ─── Controller ───────────────────────────────────────────────────────────────

class AutoScrollController(QObject):
    """
    Frame-driven auto-scroll loop.

    scroll_handler scrolls the host view by (dx, dy) viewport units.
    drag_handler is called with the delta that was scrolled while the drag
    is still active so dragged geometry can follow the view.
    """

    def __init__(
        self,
        settings: Optional[AutoScrollSettings] = None,
        scroll_handler: Optional[ScrollCallback] = None,
        drag_handler: Optional[DragCallback] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self.settings = settings or AutoScrollSettings()
        self.scroll_handler = scroll_handler
        self.drag_handler = drag_handler

        self._velocity: Tuple[float, float] = (0.0, 0.0)
        self._releasing = False

        self._timer = QTimer(self)
        self._timer.setInterval(self.settings.frame_interval_ms)
        self._timer.timeout.connect(self.tick)

    @property
    def velocity(self) -> Tuple[float, float]:
        return self._velocity

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def is_releasing(self) -> bool:
        return self._releasing

    def update_pointer(self, pointer: QPointF, viewport_width: float, viewport_height: float) -> None:
        """
        Recompute the velocity for a pointer position in viewport coordinates
        and start the loop if there is anything to scroll.
        """
        self._releasing = False
        vx = axis_velocity(pointer.x(), viewport_width, self._velocity[0], self.settings)
        vy = axis_velocity(pointer.y(), viewport_height, self._velocity[1], self.settings)
        self._velocity = (vx, vy)

        if vx or vy:
            if not self._timer.isActive():
                self._logger.debug(f"Auto-scroll started at velocity ({vx:.2f}, {vy:.2f})")
                self._timer.start()
        elif self._timer.isActive():
            self.stop()

    def tick(self) -> None:
        """Advance one frame."""
        if self._releasing:
            self._velocity = decay(self._velocity, self.settings.deceleration)
            vx, vy = self._velocity
            if abs(vx) < self.settings.stop_speed and abs(vy) < self.settings.stop_speed:
                self.stop()
                return
            if self.scroll_handler:
                self.scroll_handler(vx, vy)
            return

        vx, vy = self._velocity
        if not vx and not vy:
            return
        dx, dy = vx, vy
        if self.scroll_handler:
            applied = self.scroll_handler(vx, vy)
            if applied is not None:
                dx, dy = applied
        if self.drag_handler and (dx or dy):
            self.drag_handler(dx, dy)

    def release(self) -> None:
        """End the drag and let the current speed decay to a stop."""
        if not self._timer.isActive():
            self._velocity = (0.0, 0.0)
            return
        self._releasing = True

    def stop(self) -> None:
        """Cancel immediately."""
        if self._timer.isActive():
            self._logger.debug("Auto-scroll stopped")
        self._timer.stop()
        self._velocity = (0.0, 0.0)
        self._releasing = False
