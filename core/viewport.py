"""ViewportModel - visible time window over a sensor log.

Owns the pan/zoom/range invariants: the visible window ``[end - range, end]``
always lies inside the full time range and is never shorter than the
minimum window (one minute, or the whole log when it is shorter). Every
mutation goes through ``_clamp_end`` so inputs are clamped rather than
rejected.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

from shared.models import TimeWindow
from .geometry import Padding, PlotGeometry

logger = logging.getLogger(__name__)

RangeSpec = Union[str, float]
ALL = "all"
MIN_WINDOW_MS = 60_000.0
ZOOM_NOOP_MS = 1.0


@dataclass(frozen=True)
class ViewportState:
    view_end: Optional[float] = None
    range_spec: RangeSpec = ALL

    @property
    def is_all(self) -> bool:
        return self.range_spec == ALL


class ViewportModel:
    """Pan/zoom state machine for one dataset's time axis."""

    def __init__(
        self,
        window: TimeWindow,
        state: Optional[ViewportState] = None,
        *,
        min_window_ms: float = MIN_WINDOW_MS,
    ) -> None:
        self._window = window
        self._min_window_ms = float(min_window_ms)
        self._state = ViewportState()
        if state is not None:
            self.restore(state)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def window(self) -> TimeWindow:
        return self._window

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def floor_ms(self) -> float:
        """Shortest allowed visible duration."""
        return min(self._min_window_ms, self._window.span)

    @property
    def duration(self) -> float:
        if self._state.is_all:
            return self._window.span
        return float(self._state.range_spec)

    @property
    def end(self) -> float:
        if self._state.is_all or self._state.view_end is None:
            return self._window.full_max
        return float(self._state.view_end)

    def visible_range(self) -> Tuple[float, float]:
        end = self.end
        return end - self.duration, end

    @property
    def midpoint(self) -> float:
        start, end = self.visible_range()
        return (start + end) / 2.0

    @property
    def is_at_start(self) -> bool:
        if self._state.is_all:
            return True
        return self.visible_range()[0] <= self._window.full_min

    @property
    def is_at_end(self) -> bool:
        if self._state.is_all:
            return True
        return self.end >= self._window.full_max

    def window_label(self) -> str:
        if self._state.is_all:
            return "전체 기간"
        start, end = self.visible_range()
        fmt = "%Y-%m-%d %H:%M:%S"
        return (
            f"{datetime.fromtimestamp(start / 1000.0).strftime(fmt)} ~ "
            f"{datetime.fromtimestamp(end / 1000.0).strftime(fmt)}"
        )

    # ------------------------------------------------------------------
    # Clamping
    # ------------------------------------------------------------------

    def _clamp_duration(self, duration: float) -> float:
        return max(self.floor_ms, min(float(duration), self._window.span))

    def _clamp_end(self, end: float, duration: float) -> float:
        return max(self._window.full_min + duration, min(float(end), self._window.full_max))

    def _assign(self, end: Optional[float], range_spec: RangeSpec) -> None:
        self._state = ViewportState(view_end=end, range_spec=range_spec)

    def restore(self, state: ViewportState) -> None:
        """Adopt a stored state, re-clamping it into the current dataset."""
        if state.is_all:
            self._assign(None, ALL)
            return
        duration = self._clamp_duration(float(state.range_spec))
        end = state.view_end if state.view_end is not None else self._window.full_max
        self._assign(self._clamp_end(end, duration), duration)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def set_range(self, range_spec: RangeSpec) -> None:
        """Switch to a duration (ms) or 'all', keeping the visible midpoint."""
        if range_spec == ALL:
            self._assign(None, ALL)
            logger.debug("Viewport range -> all")
            return
        center = self.midpoint
        duration = self._clamp_duration(float(range_spec))
        self._assign(self._clamp_end(center + duration / 2.0, duration), duration)
        logger.debug("Viewport range -> %.0f ms (end=%.0f)", duration, self.end)

    def pan(self, delta_ms: float) -> None:
        if self._state.is_all:
            return
        duration = self.duration
        self._assign(self._clamp_end(self.end + float(delta_ms), duration), duration)

    def pan_fine(self, direction: int, step_ms: float = MIN_WINDOW_MS) -> None:
        self.pan(direction * step_ms)

    def pan_page(self, direction: int, ratio: float = 0.25) -> None:
        self.pan(direction * self.duration * ratio)

    def zoom(self, factor: float, center: Optional[float] = None) -> bool:
        """Scale the visible duration by 1/factor around `center`.

        Returns False when the change is below one millisecond (no-op).
        """
        if factor <= 0:
            return False
        if center is None:
            center = self.midpoint
        old_duration = self.duration
        old_end = self.end
        new_duration = self._clamp_duration(old_duration / factor)
        if abs(new_duration - old_duration) < ZOOM_NOOP_MS:
            return False
        distance = (old_end - center) * (new_duration / old_duration) if old_duration > 0 else 0.0
        self._assign(self._clamp_end(center + distance, new_duration), new_duration)
        logger.debug("Viewport zoom x%.3f -> %.0f ms", factor, new_duration)
        return True

    def navigate_to(self, end: float) -> None:
        if self._state.is_all:
            return
        duration = self.duration
        self._assign(self._clamp_end(end, duration), duration)

    def set_window(self, duration: float, end: float) -> None:
        """Set both duration and end at once (minimap edge resizing)."""
        duration = self._clamp_duration(duration)
        self._assign(self._clamp_end(end, duration), duration)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def projection(
        self,
        width: float,
        height: float,
        y_bounds: Tuple[float, float],
        padding: Padding = Padding(),
    ) -> PlotGeometry:
        start, end = self.visible_range()
        return PlotGeometry(width, height, start, end, y_bounds[0], y_bounds[1], padding)

    def map_time_to_pixel(self, t: float, width: float, padding: Padding = Padding()) -> float:
        return self.projection(width, 1.0, (0.0, 1.0), padding).time_to_x(t)

    def map_pixel_to_time(self, x: float, width: float, padding: Padding = Padding()) -> float:
        return self.projection(width, 1.0, (0.0, 1.0), padding).x_to_time(x)

    def map_value_to_pixel(
        self,
        v: float,
        height: float,
        y_bounds: Tuple[float, float],
        padding: Padding = Padding(),
    ) -> float:
        return self.projection(1.0, height, y_bounds, padding).value_to_y(v)

    def map_pixel_to_value(
        self,
        y: float,
        height: float,
        y_bounds: Tuple[float, float],
        padding: Padding = Padding(),
    ) -> float:
        return self.projection(1.0, height, y_bounds, padding).y_to_value(y)


__all__ = ["ALL", "MIN_WINDOW_MS", "RangeSpec", "ViewportModel", "ViewportState"]
