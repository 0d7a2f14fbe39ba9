"""PointerStateMachine - classifies pointer gestures on the graph.

Pure state: the caller performs hit testing and applies the returned
actions to the viewport / annotation layer.

States: IDLE -> PANNING | SCRUBBING | DRAGGING_MARKER -> IDLE on release.
A press that never travels further than the click threshold is a click.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

logger = logging.getLogger(__name__)


class GestureState(Enum):
    IDLE = auto()
    PANNING = auto()
    SCRUBBING = auto()
    DRAGGING_MARKER = auto()


class ActionKind(Enum):
    NONE = auto()
    PAN = auto()
    SCRUB = auto()
    DRAG_MARKER = auto()
    CLICK = auto()
    DROP_MARKER = auto()


@dataclass(frozen=True)
class PointerAction:
    kind: ActionKind
    x: float = 0.0
    y: float = 0.0
    dx: float = 0.0
    label: Optional[str] = None


NO_ACTION = PointerAction(ActionKind.NONE)


class PointerStateMachine:
    def __init__(
        self,
        *,
        click_threshold_px: float = 15.0,
        pinch_sensitivity: float = 0.02,
        pinch_zoom_step: float = 1.05,
        wheel_zoom_step: float = 1.1,
    ) -> None:
        self.click_threshold_px = float(click_threshold_px)
        self.pinch_sensitivity = float(pinch_sensitivity)
        self.pinch_zoom_step = float(pinch_zoom_step)
        self.wheel_zoom_step = float(wheel_zoom_step)
        self._state = GestureState.IDLE
        self._label: Optional[str] = None
        self._last_x = 0.0
        self._last_y = 0.0
        self._travel = 0.0
        self._pan_x = 0.0
        self._pinch_ref: Optional[float] = None

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def dragged_label(self) -> Optional[str]:
        return self._label

    @property
    def is_pinching(self) -> bool:
        return self._pinch_ref is not None

    @property
    def exceeded_threshold(self) -> bool:
        return self._travel > self.click_threshold_px

    # --- single pointer ---

    def press(self, x: float, y: float, *, marker_label: Optional[str] = None, on_guideline: bool = False) -> GestureState:
        """Start a gesture; marker hits win over the guideline, anything else pans."""
        if marker_label is not None:
            self._state = GestureState.DRAGGING_MARKER
        elif on_guideline:
            self._state = GestureState.SCRUBBING
        else:
            self._state = GestureState.PANNING
        self._label = marker_label
        self._last_x = float(x)
        self._last_y = float(y)
        self._travel = 0.0
        self._pan_x = float(x)
        logger.debug("Pointer press -> %s", self._state.name)
        return self._state

    def move(self, x: float, y: float) -> PointerAction:
        if self._state is GestureState.IDLE or self.is_pinching:
            return NO_ACTION
        dx = float(x) - self._last_x
        dy = float(y) - self._last_y
        self._travel += math.hypot(dx, dy)
        self._last_x = float(x)
        self._last_y = float(y)

        if self._state is GestureState.SCRUBBING:
            return PointerAction(ActionKind.SCRUB, x=x, y=y)
        if self._state is GestureState.DRAGGING_MARKER:
            return PointerAction(ActionKind.DRAG_MARKER, x=x, y=y, label=self._label)
        if not self.exceeded_threshold:
            return NO_ACTION
        # the first pan carries the motion held back under the threshold
        pan_dx = float(x) - self._pan_x
        self._pan_x = float(x)
        return PointerAction(ActionKind.PAN, x=x, y=y, dx=pan_dx)

    def release(self, x: float, y: float) -> PointerAction:
        state = self._state
        label = self._label
        clicked = not self.exceeded_threshold
        self.cancel()
        if state is GestureState.IDLE:
            return NO_ACTION
        if state is GestureState.DRAGGING_MARKER and not clicked:
            return PointerAction(ActionKind.DROP_MARKER, x=x, y=y, label=label)
        if clicked:
            return PointerAction(ActionKind.CLICK, x=x, y=y)
        return NO_ACTION

    def cancel(self) -> None:
        self._state = GestureState.IDLE
        self._label = None
        self._travel = 0.0

    # --- two-finger pinch ---

    def pinch_start(self, distance: float) -> None:
        self.cancel()
        self._pinch_ref = float(distance) if distance > 0 else None

    def pinch_move(self, distance: float) -> Optional[float]:
        """Zoom factor to apply, or None while the change is below sensitivity."""
        ref = self._pinch_ref
        if ref is None or distance <= 0:
            return None
        ratio = float(distance) / ref
        if abs(ratio - 1.0) <= self.pinch_sensitivity:
            return None
        self._pinch_ref = float(distance)
        return self.pinch_zoom_step if ratio > 1.0 else 2.0 - self.pinch_zoom_step

    def pinch_end(self) -> None:
        self._pinch_ref = None

    # --- wheel ---

    def wheel(self, delta: float) -> Optional[float]:
        if delta == 0:
            return None
        return self.wheel_zoom_step if delta > 0 else 2.0 - self.wheel_zoom_step


__all__ = ["ActionKind", "GestureState", "NO_ACTION", "PointerAction", "PointerStateMachine"]
