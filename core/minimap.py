"""MiniMapNavigator - full-range overview with an editable visible-window handle.

Translates press/move/release gestures on the overview strip into
ViewportModel updates. Geometry is in overview pixels (0 .. width).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple

import numpy as np

from .viewport import ViewportModel

logger = logging.getLogger(__name__)


def peak_decimate(times: np.ndarray, values: np.ndarray, target: int) -> Tuple[np.ndarray, np.ndarray]:
    """Reduce a trace to about `target` points keeping each chunk's min and max."""
    n = values.size
    if target < 2 or n <= target:
        return times, values

    k = n // (target // 2)
    if k <= 1:
        return times, values

    n_chunks = n // k
    n_trim = n_chunks * k
    y_view = values[:n_trim].reshape(n_chunks, k)
    t_view = times[:n_trim].reshape(n_chunks, k)

    mins = y_view.min(axis=1)
    maxs = y_view.max(axis=1)

    y_out = np.empty(n_chunks * 2, dtype=values.dtype)
    y_out[0::2] = mins
    y_out[1::2] = maxs

    t_out = np.empty(n_chunks * 2, dtype=times.dtype)
    t_out[0::2] = t_view[:, 0]
    t_out[1::2] = t_view[:, -1]

    # keep the tail so the overview reaches full_max
    if n_trim < n:
        t_out = np.append(t_out, times[-1])
        y_out = np.append(y_out, values[-1])
    return t_out, y_out


class DragMode(Enum):
    NONE = auto()
    MOVE = auto()
    LEFT = auto()
    RIGHT = auto()


@dataclass(frozen=True)
class _DragOrigin:
    x: float
    duration: float
    end: float


class MiniMapNavigator:
    """Hit testing and drag handling for the overview strip."""

    def __init__(
        self,
        viewport: ViewportModel,
        width: float = 0.0,
        *,
        handle_px: float = 12.0,
        grab_px: float = 20.0,
    ) -> None:
        self._viewport = viewport
        self._width = float(width)
        self._handle_px = float(handle_px)
        self._grab_px = float(grab_px)
        self._mode = DragMode.NONE
        self._origin: Optional[_DragOrigin] = None

    @property
    def drag_mode(self) -> DragMode:
        return self._mode

    @property
    def viewport(self) -> ViewportModel:
        return self._viewport

    def set_viewport(self, viewport: ViewportModel) -> None:
        self._viewport = viewport
        self._mode = DragMode.NONE
        self._origin = None

    def set_width(self, width: float) -> None:
        self._width = max(float(width), 0.0)

    # --- mapping ---

    def map_x(self, t: float) -> float:
        window = self._viewport.window
        if window.span <= 0:
            return 0.0
        return (t - window.full_min) / window.span * self._width

    def unmap_x(self, x: float) -> float:
        window = self._viewport.window
        if self._width <= 0:
            return window.full_min
        return window.full_min + x / self._width * window.span

    def selection_span(self) -> Tuple[float, float]:
        """Pixel extent (left, right) of the visible-window rectangle."""
        start, end = self._viewport.visible_range()
        return self.map_x(start), self.map_x(end)

    # --- gestures ---

    def hit_test(self, x: float) -> DragMode:
        """Classify a press; DragMode.NONE means 'navigate to this point'."""
        left, right = self.selection_span()
        handle_w = min(self._handle_px, (right - left) * 0.2)
        if left + handle_w <= x <= right - handle_w:
            return DragMode.MOVE
        if abs(x - left) < self._grab_px and x < left + handle_w:
            return DragMode.LEFT
        if abs(x - right) < self._grab_px and x > right - handle_w:
            return DragMode.RIGHT
        if left <= x <= right:
            return DragMode.MOVE
        return DragMode.NONE

    def press(self, x: float) -> DragMode:
        mode = self.hit_test(x)
        if mode is DragMode.NONE:
            self._viewport.navigate_to(self.unmap_x(x))
            logger.debug("Minimap navigate to x=%.1f", x)
            return mode
        self._mode = mode
        self._origin = _DragOrigin(x=float(x), duration=self._viewport.duration, end=self._viewport.end)
        return mode

    def move(self, x: float) -> None:
        origin = self._origin
        if self._mode is DragMode.NONE or origin is None or self._width <= 0:
            return
        window = self._viewport.window
        delta_ts = (x - origin.x) / self._width * window.span
        floor = self._viewport.floor_ms
        start = origin.end - origin.duration

        if self._mode is DragMode.MOVE:
            self._viewport.navigate_to(origin.end + delta_ts)
        elif self._mode is DragMode.LEFT:
            next_start = max(window.full_min, start + delta_ts)
            self._viewport.set_window(max(floor, origin.end - next_start), origin.end)
        elif self._mode is DragMode.RIGHT:
            next_end = min(window.full_max, origin.end + delta_ts)
            self._viewport.set_window(max(floor, next_end - start), next_end)

    def release(self) -> None:
        self._mode = DragMode.NONE
        self._origin = None


__all__ = ["DragMode", "MiniMapNavigator", "peak_decimate"]
