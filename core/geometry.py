"""Pure plot geometry: time/value <-> pixel mapping and hit-test predicates.

Nothing here draws. The renderer and the pointer state machine share these
helpers so hit testing can be unit-tested without a canvas.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np

from shared.models import NamedPoint

DEFAULT_Y_BOUNDS: Tuple[float, float] = (0.0, 100.0)
READOUT_WIDTH_PX = 200.0
READOUT_HEIGHT_PX = 24.0
GUIDE_DOT_RADIUS_PX = 5.0


def auto_y_bounds(values: np.ndarray, margin: float = 0.1) -> Tuple[float, float]:
    """Y range padded by `margin` of the data range.

    Fewer than two finite values give DEFAULT_Y_BOUNDS; a flat series is
    widened by one unit on each side before padding.
    """
    arr = np.asarray(values, dtype=np.float64)
    arr = arr[np.isfinite(arr)]
    if arr.size < 2:
        return DEFAULT_Y_BOUNDS
    lo = float(arr.min())
    hi = float(arr.max())
    if lo == hi:
        lo -= 1.0
        hi += 1.0
    span = hi - lo
    return lo - span * margin, hi + span * margin


@dataclass(frozen=True)
class Padding:
    top: float = 40.0
    right: float = 60.0
    bottom: float = 40.0
    left: float = 60.0


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom


@dataclass(frozen=True)
class PlotGeometry:
    """Snapshot of the mapping between a visible data window and widget pixels."""

    width: float
    height: float
    t_min: float
    t_max: float
    y_min: float
    y_max: float
    padding: Padding = Padding()

    @property
    def plot_left(self) -> float:
        return self.padding.left

    @property
    def plot_right(self) -> float:
        return self.width - self.padding.right

    @property
    def plot_top(self) -> float:
        return self.padding.top

    @property
    def plot_bottom(self) -> float:
        return self.height - self.padding.bottom

    @property
    def plot_width(self) -> float:
        return max(self.plot_right - self.plot_left, 0.0)

    @property
    def plot_height(self) -> float:
        return max(self.plot_bottom - self.plot_top, 0.0)

    @property
    def is_drawable(self) -> bool:
        return self.plot_width > 0 and self.plot_height > 0

    @property
    def time_span(self) -> float:
        return max(self.t_max - self.t_min, 1e-9)

    @property
    def value_span(self) -> float:
        return (self.y_max - self.y_min) or 1.0

    def time_to_x(self, t: float) -> float:
        return self.plot_left + (t - self.t_min) / self.time_span * self.plot_width

    def x_to_time(self, x: float) -> float:
        if self.plot_width <= 0:
            return self.t_min
        return self.t_min + (x - self.plot_left) / self.plot_width * self.time_span

    def value_to_y(self, v: float) -> float:
        return self.plot_top + self.plot_height - (v - self.y_min) / self.value_span * self.plot_height

    def y_to_value(self, y: float) -> float:
        if self.plot_height <= 0:
            return self.y_min
        return self.y_min + (self.plot_bottom - y) / self.plot_height * self.value_span

    def ms_per_pixel(self) -> float:
        if self.plot_width <= 0:
            return 0.0
        return self.time_span / self.plot_width

    # --- hit tests ---

    def in_plot_x(self, x: float) -> bool:
        return self.plot_left <= x <= self.plot_right

    def contains(self, x: float, y: float) -> bool:
        return self.in_plot_x(x) and self.plot_top <= y <= self.plot_bottom

    def readout_rect(self, guide_x: float) -> Rect:
        """Box showing the guideline's time/value readout, centred on the guideline."""
        return Rect(guide_x - READOUT_WIDTH_PX / 2.0, self.plot_top + 4.0, READOUT_WIDTH_PX, READOUT_HEIGHT_PX)

    def hit_marker(self, points: Iterable[NamedPoint], x: float, y: float, radius: float) -> Optional[str]:
        """Label of the closest visible marker within `radius` pixels, if any."""
        best: Optional[str] = None
        best_dist = math.inf
        for point in points:
            px = self.time_to_x(point.timestamp)
            if not self.in_plot_x(px):
                continue
            dist = math.hypot(x - px, y - self.value_to_y(point.value))
            if dist < radius and dist < best_dist:
                best = point.label
                best_dist = dist
        return best

    def hit_guideline(
        self,
        guide_x: float,
        guide_value: Optional[float],
        x: float,
        y: float,
        radius: float,
    ) -> bool:
        """True when (x, y) grabs the guideline, its readout box or its sample dot."""
        if guide_value is not None:
            if self.readout_rect(guide_x).contains(x, y):
                return True
            gy = self.value_to_y(guide_value)
            if math.hypot(x - guide_x, y - gy) <= radius + GUIDE_DOT_RADIUS_PX:
                return True
        return abs(x - guide_x) <= radius and self.plot_top <= y <= self.plot_bottom


__all__ = [
    "DEFAULT_Y_BOUNDS",
    "Padding",
    "PlotGeometry",
    "Rect",
    "auto_y_bounds",
]
