from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from shared.app_settings import AppSettings, AppSettingsStore
from shared.models import DataPoint, ManualAnalysisResult, NamedPoint, ParsedCsvData, RangeSelection
from shared.types import AnnotationMode, Idle
from .ai_results import AiAnalysisRunner, AiService, Dispatch
from .annotation import AnnotationEvent, AnnotationStateManager
from .geometry import Padding, PlotGeometry, auto_y_bounds
from .interaction import ActionKind, PointerAction, PointerStateMachine
from .job import GraphJob
from .minimap import DragMode, MiniMapNavigator, peak_decimate
from .results import ResultRow, build_results
from .snapping import TargetLine, nearest_sample, target_lines
from .viewport import ALL, RangeSpec, ViewportModel

logger = logging.getLogger(__name__)

_EMPTY = np.zeros(0, dtype=np.float64)


class ControllerEventType(Enum):
    DATA_CHANGED = auto()
    VIEW_CHANGED = auto()
    GUIDE_CHANGED = auto()
    ANNOTATIONS_CHANGED = auto()
    AI_CHANGED = auto()


@dataclass
class ControllerEvent:
    event_type: ControllerEventType
    data: Any = None


ControllerListener = Callable[[ControllerEvent], None]


@dataclass(frozen=True)
class RenderState:
    """Everything the graph widget needs to draw one frame."""

    geometry: Optional[PlotGeometry]
    times: np.ndarray = field(default_factory=lambda: _EMPTY)
    values: np.ndarray = field(default_factory=lambda: _EMPTY)
    target_lines: Tuple[TargetLine, ...] = ()
    points: Tuple[NamedPoint, ...] = ()
    selection: RangeSelection = field(default_factory=RangeSelection)
    manual_results: Tuple[ManualAnalysisResult, ...] = ()
    response_band: Optional[Tuple[float, float]] = None
    guide_time: Optional[float] = None
    guide_sample: Optional[DataPoint] = None
    mode: AnnotationMode = Idle()
    current_label: Optional[str] = None
    window_label: str = ""


class GraphController:
    """Headless facade for the graph page.

    Owns the job record and wires viewport, minimap, pointer gestures,
    snapping and annotations together. The GUI forwards raw pixel events
    here and redraws from ``render_state()`` when notified.
    """

    def __init__(
        self,
        job: Optional[GraphJob] = None,
        *,
        settings_store: Optional[AppSettingsStore] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._listeners: Dict[int, ControllerListener] = {}
        self._next_token = 0

        self._settings_store = settings_store or AppSettingsStore()
        self._settings = self._settings_store.get()
        self._job = job or GraphJob()
        self._annotations = AnnotationStateManager(self._job)
        self._annotation_token = self._annotations.add_listener(self._on_annotation_event)
        self._pointer = PointerStateMachine()
        self._viewport: Optional[ViewportModel] = None
        self._minimap: Optional[MiniMapNavigator] = None
        self._minimap_width = 0.0
        self._width = 0.0
        self._height = 0.0
        self._padding = Padding()
        self._y_bounds: Dict[str, Tuple[float, float]] = {}
        self._guide_fraction = 0.5
        self._runner = AiAnalysisRunner(
            self._annotations,
            dispatch=dispatch,
            on_finished=lambda _job: self._emit(ControllerEventType.AI_CHANGED),
        )
        self._unsubscribe_settings = self._settings_store.subscribe(self._apply_settings)
        self._rebuild_viewport()

    # -------------------------------------------------------------------------
    # Listener Management
    # -------------------------------------------------------------------------

    def add_listener(self, callback: ControllerListener) -> int:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = callback
            return token

    def remove_listener(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def _emit(self, event_type: ControllerEventType, data: Any = None) -> None:
        event = ControllerEvent(event_type=event_type, data=data)
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:
                logger.debug("Controller listener error: %s", exc)

    def _on_annotation_event(self, event: AnnotationEvent) -> None:
        self._emit(ControllerEventType.ANNOTATIONS_CHANGED, event)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def job(self) -> GraphJob:
        return self._job

    @property
    def annotations(self) -> AnnotationStateManager:
        return self._annotations

    @property
    def viewport(self) -> Optional[ViewportModel]:
        return self._viewport

    @property
    def minimap(self) -> Optional[MiniMapNavigator]:
        return self._minimap

    @property
    def pointer(self) -> PointerStateMachine:
        return self._pointer

    @property
    def ai_runner(self) -> AiAnalysisRunner:
        return self._runner

    @property
    def app_settings_store(self) -> AppSettingsStore:
        return self._settings_store

    @property
    def app_settings(self) -> AppSettings:
        return self._settings

    def update_app_settings(self, **kwargs) -> None:
        self._settings_store.update(**kwargs)

    def _apply_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._pointer.click_threshold_px = settings.click_threshold_px
        self._pointer.pinch_sensitivity = settings.pinch_sensitivity
        self._pointer.pinch_zoom_step = settings.pinch_zoom_step
        self._pointer.wheel_zoom_step = settings.wheel_zoom_step
        self._runner.stride = settings.ai_sample_stride
        if self._viewport is not None:
            self._rebuild_viewport()

    # -------------------------------------------------------------------------
    # Job / data
    # -------------------------------------------------------------------------

    def set_job(self, job: GraphJob) -> None:
        """Switch to another job record; its stored viewport is restored."""
        self._annotations.remove_listener(self._annotation_token)
        self._job = job
        self._annotations = AnnotationStateManager(job)
        self._annotation_token = self._annotations.add_listener(self._on_annotation_event)
        self._runner.set_manager(self._annotations)
        self._pointer.cancel()
        self._y_bounds.clear()
        self._guide_fraction = 0.5
        self._rebuild_viewport()
        self._emit(ControllerEventType.DATA_CHANGED)

    def load_data(self, parsed: ParsedCsvData) -> None:
        same_file = self._job.file_name is not None and self._job.file_name == parsed.file_name
        self._job.load_data(parsed)
        self._y_bounds.clear()
        self._guide_fraction = 0.5
        self._rebuild_viewport()
        if not same_file and self._viewport is not None and self._settings.default_range_ms != ALL:
            self._viewport.set_range(self._settings.default_range_ms)
            self._sync_viewport()
        logger.info(
            "Loaded %s: %d samples, %d channels",
            parsed.file_name or "<unnamed>",
            parsed.series.n_samples,
            len(parsed.channels),
        )
        self._emit(ControllerEventType.DATA_CHANGED)

    def clear_data(self) -> None:
        self._job.clear_data()
        self._y_bounds.clear()
        self._guide_fraction = 0.5
        self._rebuild_viewport()
        self._emit(ControllerEventType.DATA_CHANGED)

    def select_channel(self, channel_id: str) -> None:
        data = self._job.data
        if data is None or data.channel_index(channel_id) == -1:
            raise ValueError(f"unknown channel id: {channel_id!r}")
        if channel_id == self._job.selected_channel_id:
            return
        self._job.selected_channel_id = channel_id
        self._emit(ControllerEventType.DATA_CHANGED, channel_id)

    def _rebuild_viewport(self) -> None:
        data = self._job.data
        window = data.series.time_window() if data is not None else None
        if window is None:
            self._viewport = None
            self._minimap = None
            return
        self._viewport = ViewportModel(window, self._job.viewport, min_window_ms=self._settings.min_window_ms)
        self._minimap = MiniMapNavigator(
            self._viewport,
            self._minimap_width,
            handle_px=self._settings.minimap_handle_px,
            grab_px=self._settings.minimap_grab_px,
        )
        self._sync_viewport()

    def _sync_viewport(self) -> None:
        if self._viewport is not None:
            self._job.viewport = self._viewport.state

    def _view_changed(self) -> None:
        self._sync_viewport()
        self._emit(ControllerEventType.VIEW_CHANGED)

    # -------------------------------------------------------------------------
    # Channel data
    # -------------------------------------------------------------------------

    def channel_arrays(self, channel_id: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray]:
        data = self._job.data
        cid = channel_id or self._job.selected_channel_id
        if data is None or cid is None:
            return _EMPTY, _EMPTY
        index = data.channel_index(cid)
        if index == -1:
            return _EMPTY, _EMPTY
        return data.series.channel(index)

    def y_bounds(self, channel_id: Optional[str] = None) -> Tuple[float, float]:
        cid = channel_id or self._job.selected_channel_id or ""
        bounds = self._y_bounds.get(cid)
        if bounds is None:
            bounds = auto_y_bounds(self.channel_arrays(cid)[1])
            self._y_bounds[cid] = bounds
        return bounds

    def minimap_trace(self) -> Tuple[np.ndarray, np.ndarray]:
        times, values = self.channel_arrays()
        return peak_decimate(times, values, int(self._settings.minimap_max_points))

    # -------------------------------------------------------------------------
    # Viewport operations
    # -------------------------------------------------------------------------

    def set_size(self, width: float, height: float, padding: Optional[Padding] = None) -> None:
        self._width = float(width)
        self._height = float(height)
        if padding is not None:
            self._padding = padding

    def geometry(self) -> Optional[PlotGeometry]:
        if self._viewport is None:
            return None
        return self._viewport.projection(self._width, self._height, self.y_bounds(), self._padding)

    def set_range(self, range_spec: RangeSpec) -> None:
        if self._viewport is None:
            return
        self._viewport.set_range(range_spec)
        self._view_changed()

    def pan(self, delta_ms: float) -> None:
        if self._viewport is None:
            return
        self._viewport.pan(delta_ms)
        self._view_changed()

    def pan_fine(self, direction: int) -> None:
        self.pan(direction * self._settings.fine_pan_ms)

    def pan_page(self, direction: int) -> None:
        if self._viewport is None:
            return
        self._viewport.pan_page(direction, self._settings.page_pan_ratio)
        self._view_changed()

    def zoom(self, factor: float, center: Optional[float] = None) -> bool:
        if self._viewport is None:
            return False
        changed = self._viewport.zoom(factor, center)
        if changed:
            self._view_changed()
        return changed

    def navigate_to(self, end: float) -> None:
        if self._viewport is None:
            return
        self._viewport.navigate_to(end)
        self._view_changed()

    def wheel(self, delta: float) -> bool:
        factor = self._pointer.wheel(delta)
        if factor is None or self._viewport is None:
            return False
        return self.zoom(factor, self._viewport.midpoint)

    def key_press(self, key: str) -> bool:
        """Keyboard navigation; returns True when the key was handled."""
        key = key.lower()
        if key == "left":
            self.pan_fine(-1)
        elif key == "right":
            self.pan_fine(1)
        elif key == "pageup":
            self.pan_page(-1)
        elif key == "pagedown":
            self.pan_page(1)
        elif key == "escape":
            self._annotations.cancel_mode()
        else:
            return False
        return True

    # -------------------------------------------------------------------------
    # Guideline
    # -------------------------------------------------------------------------

    @property
    def guide_time(self) -> Optional[float]:
        """Guideline instant; it keeps its place in the plot while the data pans under it."""
        if self._viewport is None:
            return None
        start, end = self._viewport.visible_range()
        return start + self._guide_fraction * (end - start)

    def set_guide_time(self, t: float) -> None:
        if self._viewport is None:
            return
        start, end = self._viewport.visible_range()
        span = end - start
        fraction = (float(t) - start) / span if span > 0 else 0.5
        self._guide_fraction = min(max(fraction, 0.0), 1.0)
        self._emit(ControllerEventType.GUIDE_CHANGED, self.guide_time)

    def guide_sample(self) -> Optional[DataPoint]:
        t = self.guide_time
        if t is None:
            return None
        times, values = self.channel_arrays()
        return nearest_sample(times, values, t)

    # -------------------------------------------------------------------------
    # Pointer routing
    # -------------------------------------------------------------------------

    def pointer_press(self, x: float, y: float) -> None:
        geom = self.geometry()
        if geom is None or not geom.is_drawable:
            return
        label = geom.hit_marker(self._job.named_points.values(), x, y, self._settings.marker_hit_radius_px)
        on_guide = False
        if label is None and self.guide_time is not None:
            sample = self.guide_sample()
            on_guide = geom.hit_guideline(
                geom.time_to_x(self.guide_time),
                sample.value if sample is not None else None,
                x,
                y,
                self._settings.guideline_hit_px,
            )
        self._pointer.press(x, y, marker_label=label, on_guideline=on_guide)

    def pointer_move(self, x: float, y: float) -> None:
        self._apply_action(self._pointer.move(x, y))

    def pointer_release(self, x: float, y: float) -> Optional[object]:
        return self._apply_action(self._pointer.release(x, y))

    def pinch_start(self, distance: float) -> None:
        self._pointer.pinch_start(distance)

    def pinch_move(self, distance: float) -> bool:
        factor = self._pointer.pinch_move(distance)
        if factor is None or self._viewport is None:
            return False
        return self.zoom(factor, self._viewport.midpoint)

    def pinch_end(self) -> None:
        self._pointer.pinch_end()

    def _apply_action(self, action: PointerAction) -> Optional[object]:
        geom = self.geometry()
        if geom is None or action.kind is ActionKind.NONE:
            return None
        if action.kind is ActionKind.PAN:
            self.pan(-action.dx * geom.ms_per_pixel())
        elif action.kind in (ActionKind.SCRUB, ActionKind.DRAG_MARKER):
            self.set_guide_time(geom.x_to_time(action.x))
        elif action.kind is ActionKind.DROP_MARKER and action.label is not None:
            return self._drop_marker(geom, action)
        elif action.kind is ActionKind.CLICK:
            return self._click(geom, action.x, action.y)
        return None

    def _drop_marker(self, geom: PlotGeometry, action: PointerAction) -> Optional[NamedPoint]:
        self.set_guide_time(geom.x_to_time(action.x))
        sample = self.guide_sample()
        if sample is None:
            return None
        snapped = self._annotations.snap(action.label, sample)
        return self._annotations.place_point(action.label, snapped)

    def _click(self, geom: PlotGeometry, x: float, y: float) -> Optional[object]:
        guide_t = self.guide_time
        if guide_t is not None and geom.readout_rect(geom.time_to_x(guide_t)).contains(x, y):
            sample = self.guide_sample()
            return self._annotations.place_at_cursor(sample) if sample is not None else None
        if not geom.contains(x, y):
            return None
        self.set_guide_time(geom.x_to_time(x))
        if isinstance(self._job.mode, Idle):
            return None
        sample = self.guide_sample()
        if sample is None:
            return None
        if abs(geom.value_to_y(sample.value) - y) > self._settings.point_hit_tolerance_px:
            return None
        return self._annotations.place_at_cursor(sample)

    # -------------------------------------------------------------------------
    # Minimap routing
    # -------------------------------------------------------------------------

    def set_minimap_width(self, width: float) -> None:
        self._minimap_width = float(width)
        if self._minimap is not None:
            self._minimap.set_width(width)

    def minimap_press(self, x: float) -> DragMode:
        if self._minimap is None:
            return DragMode.NONE
        mode = self._minimap.press(x)
        if mode is DragMode.NONE:
            self._view_changed()
        return mode

    def minimap_move(self, x: float) -> None:
        if self._minimap is None or self._minimap.drag_mode is DragMode.NONE:
            return
        self._minimap.move(x)
        self._view_changed()

    def minimap_release(self) -> None:
        if self._minimap is not None:
            self._minimap.release()

    # -------------------------------------------------------------------------
    # AI / results / rendering
    # -------------------------------------------------------------------------

    def request_ai_analysis(self, service: AiService) -> bool:
        started = self._runner.request(service)
        self._emit(ControllerEventType.AI_CHANGED)
        return started

    def results(self) -> List[ResultRow]:
        return build_results(self._job)

    def render_state(self) -> RenderState:
        geom = self.geometry()
        if geom is None or self._viewport is None:
            return RenderState(geometry=None)
        job = self._job
        times, values = self.channel_arrays()
        start, end = self._viewport.visible_range()
        lo = max(int(np.searchsorted(times, start, side="left")) - 1, 0)
        hi = min(int(np.searchsorted(times, end, side="right")) + 1, times.size)
        cid = job.selected_channel_id
        state = job.channel_analysis.get(cid) if cid is not None else None
        st = job.named_points.get("ST")
        en = job.named_points.get("EN")
        band = (st.timestamp, en.timestamp) if st is not None and en is not None else None
        return RenderState(
            geometry=geom,
            times=times[lo:hi],
            values=values[lo:hi],
            target_lines=tuple(target_lines(job.sensor_type, job.named_points)),
            points=tuple(job.named_points.values()),
            selection=state.selection if state is not None else RangeSelection(),
            manual_results=tuple(state.results) if state is not None else (),
            response_band=band,
            guide_time=self.guide_time,
            guide_sample=self.guide_sample(),
            mode=job.mode,
            current_label=self._annotations.current_label,
            window_label=self._viewport.window_label(),
        )

    def shutdown(self) -> None:
        self._unsubscribe_settings()
        self._runner.shutdown(wait=False)


__all__ = [
    "ControllerEvent",
    "ControllerEventType",
    "GraphController",
    "RenderState",
]
