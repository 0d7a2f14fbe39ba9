"""Point snapping for calibration labels.

Every label snaps to the nearest recorded sample. The response-end label
``EN`` additionally searches, after ``ST``, for the sample pair that crosses
the sensor's response target and snaps to the second sample of that pair, so
elapsed response times stay whole multiples of the sampling interval.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional

import numpy as np

from shared.models import DataPoint, NamedPoint
from shared.types import SensorType, normalize_label

logger = logging.getLogger(__name__)

PH_HIGH_TARGET = 9.7
PH_LOW_TARGET = 4.3
PH_NEUTRAL = 7.0
DO_TARGET = 1.0
SPAN_RESPONSE_FRACTION = 0.9


@dataclass(frozen=True)
class TargetLine:
    """Horizontal reference line drawn on the graph."""

    value: float
    label: str


def nearest_sample(times: np.ndarray, values: np.ndarray, timestamp: float) -> Optional[DataPoint]:
    """Sample closest in time to `timestamp` (earliest wins ties); None for an empty channel."""
    if times.size == 0:
        return None
    idx = int(np.searchsorted(times, timestamp, side="left"))
    if idx <= 0:
        best = 0
    elif idx >= times.size:
        best = times.size - 1
    else:
        before = timestamp - times[idx - 1]
        after = times[idx] - timestamp
        best = idx - 1 if before <= after else idx
    return DataPoint(float(times[best]), float(values[best]))


def response_target(
    sensor_type: SensorType,
    candidate_value: float,
    points: Mapping[str, NamedPoint],
) -> Optional[float]:
    """Value whose crossing marks the end of the sensor response, if defined."""
    if sensor_type is SensorType.PH:
        return PH_HIGH_TARGET if candidate_value > PH_NEUTRAL else PH_LOW_TARGET
    if sensor_type is SensorType.DO:
        return DO_TARGET
    if sensor_type in (SensorType.TU, SensorType.CL):
        s1 = points.get("S1")
        if s1 is not None:
            return s1.value * SPAN_RESPONSE_FRACTION
    return None


def _crossing_predicate(sensor_type: SensorType, target: float) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    if sensor_type is SensorType.PH and target == PH_HIGH_TARGET:
        return lambda a, b: ((a < target) & (b >= target)) | ((a >= target) & (b < target))
    return lambda a, b: ((a > target) & (b <= target)) | ((a <= target) & (b > target))


def threshold_crossing(
    times: np.ndarray,
    values: np.ndarray,
    target: float,
    after: float,
    near: float,
    sensor_type: SensorType,
) -> Optional[DataPoint]:
    """Second sample of the crossing pair closest in time to `near`.

    Only pairs whose first sample lies strictly after `after` qualify. Ties
    go to the earliest crossing.
    """
    if times.size < 2:
        return None
    a = values[:-1]
    b = values[1:]
    crossed = _crossing_predicate(sensor_type, target)(a, b) & (times[:-1] > after)
    hits = np.nonzero(crossed)[0] + 1
    if hits.size == 0:
        return None
    # rank by the interpolated crossing instant, return the sampled one
    lo = hits - 1
    denom = values[hits] - values[lo]
    ratio = np.divide(target - values[lo], denom, out=np.zeros_like(denom), where=denom != 0)
    interp_ts = times[lo] + (times[hits] - times[lo]) * ratio
    best = hits[int(np.argmin(np.abs(interp_ts - near)))]
    return DataPoint(float(times[best]), float(values[best]))


def snap_point(
    label: str,
    candidate: DataPoint,
    times: np.ndarray,
    values: np.ndarray,
    sensor_type: SensorType,
    points: Mapping[str, NamedPoint],
) -> DataPoint:
    """Authoritative sample for placing `label` near `candidate`.

    The nearest recorded sample is the result for every label and the
    fallback for EN when no target or crossing exists. An empty channel
    leaves the candidate unchanged.
    """
    base = nearest_sample(times, values, candidate.timestamp) or candidate
    if normalize_label(label) != "EN":
        return base
    target = response_target(sensor_type, candidate.value, points)
    if target is None:
        return base
    st = points.get("ST")
    after = st.timestamp if st is not None else 0.0
    hit = threshold_crossing(times, values, target, after, candidate.timestamp, sensor_type)
    if hit is None:
        logger.debug("No %.3f crossing after %.0f for EN; using nearest sample", target, after)
        return base
    return hit


def target_lines(sensor_type: SensorType, points: Mapping[str, NamedPoint]) -> List[TargetLine]:
    if sensor_type is SensorType.PH:
        return [TargetLine(PH_LOW_TARGET, "TARGET 4.3"), TargetLine(PH_HIGH_TARGET, "TARGET 9.7")]
    if sensor_type is SensorType.DO:
        return [TargetLine(DO_TARGET, "TARGET 1.0")]
    if sensor_type in (SensorType.TU, SensorType.CL):
        s1 = points.get("S1")
        if s1 is not None:
            value = s1.value * SPAN_RESPONSE_FRACTION
            return [TargetLine(value, f"TARGET (S1 90%: {value:.3f})")]
    return []


__all__ = [
    "TargetLine",
    "nearest_sample",
    "response_target",
    "snap_point",
    "target_lines",
    "threshold_crossing",
]
