"""Metric helpers for calibration analysis.

- range_min_max: min/max of a channel between two instants
- response_time_seconds: ST -> EN elapsed time in whole seconds
"""
from typing import Optional, Tuple

import numpy as np


def range_min_max(
    times: np.ndarray,
    values: np.ndarray,
    t_start: float,
    t_end: float,
) -> Optional[Tuple[float, float]]:
    """(min, max) of the finite samples with t_start <= t <= t_end; order-insensitive bounds."""
    lo, hi = (t_start, t_end) if t_start <= t_end else (t_end, t_start)
    arr_t = np.asarray(times, dtype=np.float64)
    arr_v = np.asarray(values, dtype=np.float64)
    mask = (arr_t >= lo) & (arr_t <= hi) & np.isfinite(arr_v)
    if not np.any(mask):
        return None
    selected = arr_v[mask]
    return float(selected.min()), float(selected.max())


def response_time_seconds(start_ms: float, end_ms: float) -> int:
    return int(round((end_ms - start_ms) / 1000.0))
