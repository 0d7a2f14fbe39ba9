"""AnnotationStateManager - placement modes, named points and manual results.

Holds the job's annotation state machine. Exactly one AnnotationMode is
active at a time (idle, two-click range selection, single-label placement or
sequential placement); entering a mode clears every channel's pending range
selection but never committed points or results.

Listeners registered with ``add_listener`` receive an AnnotationEvent after
every mutation so the page can re-render.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from analysis.metrics import range_min_max
from shared.models import DataPoint, ManualAnalysisResult, NamedPoint, RangeSelection
from shared.types import (
    IDLE,
    RESPONSE_LABELS,
    AnnotationMode,
    Idle,
    ManualRange,
    SensorType,
    SequentialPlacement,
    SinglePlacement,
    normalize_label,
    sequential_order,
    valid_labels,
)
from .job import GraphJob
from .snapping import snap_point

logger = logging.getLogger(__name__)


class AnnotationEventType(Enum):
    """Event types emitted by AnnotationStateManager."""
    MODE_CHANGED = auto()
    SELECTION_CHANGED = auto()
    POINTS_CHANGED = auto()
    RESULTS_CHANGED = auto()
    SENSOR_CHANGED = auto()
    PLACEMENT_COMPLETED = auto()


@dataclass
class AnnotationEvent:
    event_type: AnnotationEventType
    data: Any = None


AnnotationListener = Callable[[AnnotationEvent], None]


class AnnotationStateManager:
    """Mode-exclusive annotation operations over a GraphJob."""

    def __init__(self, job: GraphJob) -> None:
        self._job = job
        self._lock = threading.RLock()
        self._listeners: Dict[int, AnnotationListener] = {}
        self._next_token = 0

    # -------------------------------------------------------------------------
    # Listener Management
    # -------------------------------------------------------------------------

    def add_listener(self, callback: AnnotationListener) -> int:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = callback
            return token

    def remove_listener(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def _emit(self, event_type: AnnotationEventType, data: Any = None) -> None:
        event = AnnotationEvent(event_type=event_type, data=data)
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:
                logger.debug("Annotation listener error: %s", exc)

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    @property
    def job(self) -> GraphJob:
        return self._job

    @property
    def mode(self) -> AnnotationMode:
        return self._job.mode

    @property
    def label_order(self) -> Tuple[str, ...]:
        return sequential_order(self._job.sensor_type, reagent=self._job.is_reagent)

    @property
    def valid_labels(self) -> frozenset:
        return valid_labels(self._job.sensor_type, reagent=self._job.is_reagent)

    @property
    def current_label(self) -> Optional[str]:
        """Label the next committed point will receive, if a placement mode is active."""
        mode = self._job.mode
        if isinstance(mode, SinglePlacement):
            return mode.label
        if isinstance(mode, SequentialPlacement):
            order = self.label_order
            return order[mode.index] if mode.index < len(order) else None
        return None

    @property
    def is_placing(self) -> bool:
        return isinstance(self._job.mode, (SinglePlacement, SequentialPlacement))

    @property
    def is_range_mode(self) -> bool:
        return isinstance(self._job.mode, ManualRange)

    def selection(self, channel_id: str) -> RangeSelection:
        state = self._job.channel_analysis.get(channel_id)
        return state.selection if state is not None else RangeSelection()

    def results(self, channel_id: str) -> Tuple[ManualAnalysisResult, ...]:
        state = self._job.channel_analysis.get(channel_id)
        return tuple(state.results) if state is not None else ()

    # -------------------------------------------------------------------------
    # Mode transitions
    # -------------------------------------------------------------------------

    def _clear_selections(self) -> None:
        for state in self._job.channel_analysis.values():
            state.selection = RangeSelection()

    def _enter(self, mode: AnnotationMode) -> None:
        self._clear_selections()
        self._job.mode = mode
        logger.debug("Annotation mode -> %s", mode)
        self._emit(AnnotationEventType.MODE_CHANGED, mode)

    def start_range_selection(self, channel_id: Optional[str] = None) -> None:
        self._enter(ManualRange(channel_id or self._job.selected_channel_id))

    def toggle_range_mode(self) -> None:
        if self.is_range_mode:
            self._enter(IDLE)
        else:
            self.start_range_selection()

    def toggle_sequential_placement(self) -> None:
        if isinstance(self._job.mode, SequentialPlacement):
            self._enter(IDLE)
        else:
            self._enter(SequentialPlacement(0))

    def set_single_placement(self, label: Optional[str]) -> None:
        if label is None:
            self._enter(IDLE)
            return
        key = normalize_label(label)
        self._check_label(key)
        self._enter(SinglePlacement(key))

    def cancel_mode(self) -> None:
        if not isinstance(self._job.mode, Idle):
            self._enter(IDLE)

    def toggle_analysis_mode(self, channel_id: str) -> None:
        """Open/close the manual analysis panel of a channel."""
        state = self._job.analysis_for(channel_id)
        state.is_analyzing = not state.is_analyzing
        state.selection = RangeSelection()
        if self.is_range_mode:
            self._job.mode = IDLE
            self._emit(AnnotationEventType.MODE_CHANGED, IDLE)
        self._emit(AnnotationEventType.SELECTION_CHANGED, channel_id)

    def set_sensor_type(self, sensor_type: SensorType | str) -> None:
        sensor_type = SensorType.parse(sensor_type)
        if sensor_type is self._job.sensor_type:
            return
        self._job.sensor_type = sensor_type
        if sensor_type is not SensorType.CL:
            self._job.is_reagent = False
        if self.is_placing:
            self._enter(IDLE)
        self._emit(AnnotationEventType.SENSOR_CHANGED, sensor_type)

    def toggle_reagent(self) -> bool:
        """Reagent-type chlorine analysers have no response time; drop ST/EN while enabled."""
        if self._job.sensor_type is not SensorType.CL:
            logger.warning("Reagent mode only applies to Cl sensors (current: %s)", self._job.sensor_type.value)
            return self._job.is_reagent
        self._job.is_reagent = not self._job.is_reagent
        if self._job.is_reagent:
            removed = [label for label in RESPONSE_LABELS if self._job.named_points.pop(label, None) is not None]
            if removed:
                self._emit(AnnotationEventType.POINTS_CHANGED, tuple(removed))
            if self.is_placing:
                self._enter(IDLE)
        self._emit(AnnotationEventType.SENSOR_CHANGED, self._job.sensor_type)
        return self._job.is_reagent

    # -------------------------------------------------------------------------
    # Named points
    # -------------------------------------------------------------------------

    def _check_label(self, label: str) -> None:
        if label not in self.valid_labels:
            raise ValueError(f"label {label!r} is not valid for sensor type {self._job.sensor_type.value}")

    def place_point(self, label: str, point: DataPoint) -> NamedPoint:
        """Upsert a named point and advance the active placement mode."""
        key = normalize_label(label)
        self._check_label(key)
        named = NamedPoint(key, float(point.timestamp), float(point.value))
        self._job.named_points[key] = named
        self._emit(AnnotationEventType.POINTS_CHANGED, (key,))

        mode = self._job.mode
        if isinstance(mode, SinglePlacement) and mode.label == key:
            self._enter(IDLE)
        elif isinstance(mode, SequentialPlacement) and self.current_label == key:
            next_index = mode.index + 1
            if next_index >= len(self.label_order):
                self._enter(IDLE)
                logger.info("Sequential placement completed (%d labels)", next_index)
                self._emit(AnnotationEventType.PLACEMENT_COMPLETED, next_index)
            else:
                self._job.mode = replace(mode, index=next_index)
                self._emit(AnnotationEventType.MODE_CHANGED, self._job.mode)
        return named

    def remove_point(self, label: str) -> bool:
        key = normalize_label(label)
        if self._job.named_points.pop(key, None) is None:
            return False
        self._emit(AnnotationEventType.POINTS_CHANGED, (key,))
        return True

    def replace_points(self, points: Dict[str, NamedPoint]) -> None:
        """Swap in a whole point map (AI results); unknown labels are dropped."""
        allowed = self.valid_labels
        kept: Dict[str, NamedPoint] = {}
        for label, point in points.items():
            key = normalize_label(label)
            if key not in allowed:
                logger.warning("Dropping point %s not valid for %s", key, self._job.sensor_type.value)
                continue
            kept[key] = replace(point, label=key)
        self._job.named_points = kept
        self._emit(AnnotationEventType.POINTS_CHANGED, tuple(kept))

    def snap(self, label: str, candidate: DataPoint, channel_id: Optional[str] = None) -> DataPoint:
        times, values = self._channel_arrays(channel_id)
        return snap_point(label, candidate, times, values, self._job.sensor_type, self._job.named_points)

    def place_at_cursor(self, candidate: DataPoint, channel_id: Optional[str] = None) -> Optional[object]:
        """Commit a clicked sample according to the active mode.

        Returns the ManualAnalysisResult or NamedPoint produced, or None when
        the click only started a selection or no mode is active.
        """
        mode = self._job.mode
        if isinstance(mode, ManualRange):
            return self.complete_range_selection(candidate)
        label = self.current_label
        if label is None:
            if isinstance(mode, SequentialPlacement):
                self._enter(IDLE)
            return None
        snapped = self.snap(label, candidate, channel_id)
        return self.place_point(label, snapped)

    # -------------------------------------------------------------------------
    # Manual range analysis
    # -------------------------------------------------------------------------

    def _channel_arrays(self, channel_id: Optional[str]) -> Tuple[np.ndarray, np.ndarray]:
        data = self._job.data
        empty = np.zeros(0, dtype=np.float64)
        if data is None:
            return empty, empty
        cid = channel_id or self._job.selected_channel_id
        index = data.channel_index(cid) if cid is not None else -1
        if index == -1:
            return empty, empty
        return data.series.channel(index)

    def complete_range_selection(self, point: DataPoint) -> Optional[ManualAnalysisResult]:
        """First click stores the start; second click produces a min/max result."""
        mode = self._job.mode
        if not isinstance(mode, ManualRange):
            return None
        channel_id = mode.channel_id or self._job.selected_channel_id
        if channel_id is None:
            return None
        state = self._job.analysis_for(channel_id)
        if state.selection.start is None:
            state.selection = RangeSelection(start=point)
            self._emit(AnnotationEventType.SELECTION_CHANGED, channel_id)
            return None

        start = state.selection.start
        state.selection = RangeSelection()
        times, values = self._channel_arrays(channel_id)
        bounds = range_min_max(times, values, start.timestamp, point.timestamp)
        if bounds is None:
            logger.debug("Range selection on %s had no samples; discarded", channel_id)
            self._emit(AnnotationEventType.SELECTION_CHANGED, channel_id)
            return None
        lo, hi = sorted((start.timestamp, point.timestamp))
        result = ManualAnalysisResult(start_time=lo, end_time=hi, min=bounds[0], max=bounds[1])
        state.results.append(result)
        self._emit(AnnotationEventType.RESULTS_CHANGED, channel_id)
        return result

    def cancel_selection(self, channel_id: str) -> None:
        state = self._job.channel_analysis.get(channel_id)
        if state is None or state.selection.is_empty:
            return
        state.selection = RangeSelection()
        self._emit(AnnotationEventType.SELECTION_CHANGED, channel_id)

    def delete_manual_result(self, channel_id: str, result_id: str) -> bool:
        state = self._job.channel_analysis.get(channel_id)
        if state is None:
            return False
        remaining = [r for r in state.results if r.id != result_id]
        if len(remaining) == len(state.results):
            return False
        state.results = remaining
        self._emit(AnnotationEventType.RESULTS_CHANGED, channel_id)
        return True

    def undo_last_result(self, channel_id: str) -> Optional[ManualAnalysisResult]:
        state = self._job.channel_analysis.get(channel_id)
        if state is None or not state.results:
            return None
        removed = state.results.pop()
        self._emit(AnnotationEventType.RESULTS_CHANGED, channel_id)
        return removed

    def reset_analysis(self) -> None:
        """Drop every channel's results and selections plus all named points."""
        self._job.channel_analysis = {}
        self._job.named_points = {}
        self._job.mode = IDLE
        logger.debug("Annotation state reset for job %s", self._job.id)
        self._emit(AnnotationEventType.MODE_CHANGED, IDLE)
        self._emit(AnnotationEventType.POINTS_CHANGED, ())
        self._emit(AnnotationEventType.RESULTS_CHANGED, None)


__all__ = [
    "AnnotationEvent",
    "AnnotationEventType",
    "AnnotationListener",
    "AnnotationStateManager",
]
