"""AI phase / point-map intake.

The remote analysis service is injected as a plain callable taking an
AiRequest. It may answer with a phase list or a point map, either as JSON
text (optionally wrapped in a markdown code fence) or already decoded.
Results are applied wholesale; a failure is logged and stored on the job as
``ai_error`` without touching existing annotations.
"""
from __future__ import annotations

import json
import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from shared.models import DataPoint, NamedPoint, Phase, to_epoch_ms
from shared.types import SensorType, normalize_label
from .annotation import AnnotationStateManager
from .job import GraphJob

logger = logging.getLogger(__name__)

PHASE_ORDER: Tuple[str, ...] = (
    "Low Phase 1",
    "High Phase 1",
    "Low Phase 2",
    "High Phase 2",
    "Low Phase 3",
    "High Phase 3",
    "Medium Phase 1",
)
SAMPLE_STRIDE = 10
VALUE_DECIMALS = 4

_RESPONSE_KEYS = {"responseStartPoint": "ST", "responseEndPoint": "EN"}
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class AiResponseError(ValueError):
    """Raised when the analysis service returns something unusable."""


@dataclass(frozen=True)
class AiRequest:
    sensor_type: SensorType
    measurement_range: Optional[float]
    channel_id: str
    points: Tuple[Tuple[str, float], ...]
    phases: Tuple[Phase, ...] = ()


@dataclass(frozen=True)
class PointResponse:
    points: Dict[str, NamedPoint] = field(default_factory=dict)
    response_start: Optional[DataPoint] = None
    response_end: Optional[DataPoint] = None
    response_error: Optional[str] = None


def _iso(ts_ms: float) -> str:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def build_request(job: GraphJob, *, stride: int = SAMPLE_STRIDE) -> AiRequest:
    """Every `stride`-th row of the selected channel, rounded, missing readings dropped."""
    data = job.data
    index = job.selected_channel_index
    if data is None or index == -1:
        raise ValueError("AI analysis requires parsed data and a selected channel")
    times = data.series.timestamps_ms[::stride]
    values = np.round(data.series.values[::stride, index], VALUE_DECIMALS)
    mask = np.isfinite(values)
    points = tuple((_iso(float(t)), float(v)) for t, v in zip(times[mask], values[mask]))
    return AiRequest(
        sensor_type=job.sensor_type,
        measurement_range=data.measurement_range,
        channel_id=str(job.selected_channel_id),
        points=points,
        phases=tuple(job.ai_phases or ()),
    )


# ----------------------------
# Parsing
# ----------------------------

def _decode(payload: Any) -> Any:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if not isinstance(payload, str):
        return payload
    text = _FENCE_RE.sub("", payload).strip()
    if not text:
        raise AiResponseError("empty response from analysis service")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"[\[{][\s\S]*[\]}]", text)
        if match is None:
            raise AiResponseError("no JSON found in analysis response") from None
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise AiResponseError(f"invalid JSON in analysis response: {exc}") from exc


def _parse_time(raw: Any) -> float:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_ms(datetime.fromisoformat(text))
        except ValueError as exc:
            raise AiResponseError(f"bad timestamp {raw!r}") from exc
    raise AiResponseError(f"bad timestamp {raw!r}")


def _parse_point(raw: Any, key: str) -> DataPoint:
    if not isinstance(raw, dict) or "timestamp" not in raw or "value" not in raw:
        raise AiResponseError(f"point {key!r} must have timestamp and value")
    try:
        value = float(raw["value"])
    except (TypeError, ValueError) as exc:
        raise AiResponseError(f"point {key!r} has a non-numeric value") from exc
    return DataPoint(_parse_time(raw["timestamp"]), value)


def _phase_rank(phase: Phase) -> int:
    try:
        return PHASE_ORDER.index(phase.name)
    except ValueError:
        return len(PHASE_ORDER)


def parse_phase_response(payload: Any) -> List[Phase]:
    data = _decode(payload)
    if not isinstance(data, list) or not data:
        raise AiResponseError("phase response must be a non-empty list")
    phases: List[Phase] = []
    for item in data:
        if not isinstance(item, dict):
            raise AiResponseError("phase entries must be objects")
        try:
            name = str(item["name"])
            start = _parse_time(item["startTime"])
            end = _parse_time(item["endTime"])
        except KeyError as exc:
            raise AiResponseError(f"phase entry missing {exc.args[0]!r}") from exc
        if end < start:
            raise AiResponseError(f"phase {name!r} ends before it starts")
        phases.append(Phase(name, start, end))
    phases.sort(key=_phase_rank)
    return phases


def parse_point_response(payload: Any) -> PointResponse:
    data = _decode(payload)
    if not isinstance(data, dict) or not data:
        raise AiResponseError("point response must be a non-empty object")
    points: Dict[str, NamedPoint] = {}
    ends: Dict[str, DataPoint] = {}
    error = data.get("responseError")
    for key, raw in data.items():
        if key == "responseError" or raw is None:
            continue
        point = _parse_point(raw, key)
        if key in _RESPONSE_KEYS:
            ends[key] = point
            continue
        label = normalize_label(key)
        points[label] = NamedPoint(label, point.timestamp, point.value)
    if not points and not ends:
        raise AiResponseError("point response contains no points")
    return PointResponse(
        points=points,
        response_start=ends.get("responseStartPoint"),
        response_end=ends.get("responseEndPoint"),
        response_error=str(error) if error else None,
    )


def parse_ai_response(payload: Any) -> List[Phase] | PointResponse:
    data = _decode(payload)
    if isinstance(data, list):
        return parse_phase_response(data)
    return parse_point_response(data)


# ----------------------------
# Applying
# ----------------------------

def apply_phases(job: GraphJob, phases: List[Phase]) -> None:
    job.ai_phases = list(phases)
    job.ai_error = None


def apply_points(manager: AnnotationStateManager, response: PointResponse) -> None:
    """Replace the job's named points; response start/end fill ST/EN when absent."""
    job = manager.job
    points = dict(response.points)
    allowed = manager.valid_labels
    for key, label in _RESPONSE_KEYS.items():
        point = response.response_start if key == "responseStartPoint" else response.response_end
        if point is not None and label in allowed and label not in points:
            points[label] = NamedPoint(label, point.timestamp, point.value)
    job.ai_response_start = response.response_start
    job.ai_response_end = response.response_end
    job.ai_error = response.response_error
    manager.replace_points(points)


# ----------------------------
# Runner
# ----------------------------

AiService = Callable[[AiRequest], Any]
Dispatch = Callable[[Callable[[], None]], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class AiAnalysisRunner:
    """Runs one service call at a time on a background worker."""

    def __init__(
        self,
        manager: AnnotationStateManager,
        *,
        dispatch: Optional[Dispatch] = None,
        on_finished: Optional[Callable[[GraphJob], None]] = None,
        stride: int = SAMPLE_STRIDE,
    ) -> None:
        self._manager = manager
        self._dispatch = dispatch or _call_inline
        self._on_finished = on_finished
        self.stride = int(stride)
        self._executor: ThreadPoolExecutor | None = ThreadPoolExecutor(max_workers=1)
        self._lock = threading.Lock()

    @property
    def manager(self) -> AnnotationStateManager:
        return self._manager

    def set_manager(self, manager: AnnotationStateManager) -> None:
        self._manager = manager

    @property
    def busy(self) -> bool:
        return self._manager.job.is_ai_analyzing

    def request(self, service: AiService) -> bool:
        """Submit `service(build_request(job))`; False when busy or the job has no data."""
        job = self._manager.job
        with self._lock:
            if job.is_ai_analyzing:
                logger.warning("AI analysis already running for job %s", job.id)
                return False
            executor = self._executor
            if executor is None:
                return False
            try:
                request = build_request(job, stride=self.stride)
            except ValueError as exc:
                job.ai_error = str(exc)
                logger.warning("AI analysis not started: %s", exc)
                return False
            job.is_ai_analyzing = True
            job.ai_error = None

        def _work() -> List[Phase] | PointResponse:
            return parse_ai_response(service(request))

        future = executor.submit(_work)

        def _on_done(fut: Future, target=job) -> None:
            self._dispatch(lambda: self._finish(fut, target))

        future.add_done_callback(_on_done)
        return True

    def _finish(self, future: Future, job: GraphJob) -> None:
        job.is_ai_analyzing = False
        try:
            result = future.result()
        except Exception as exc:
            logger.exception("AI analysis failed: %s", exc)
            job.ai_error = str(exc) or exc.__class__.__name__
        else:
            if job is not self._manager.job:
                logger.debug("AI result for job %s arrived after the page switched jobs", job.id)
            elif isinstance(result, PointResponse):
                apply_points(self._manager, result)
            else:
                apply_phases(job, result)
        if self._on_finished is not None:
            self._on_finished(job)

    def shutdown(self, wait: bool = True) -> None:
        executor = self._executor
        self._executor = None
        if executor is not None:
            executor.shutdown(wait=wait)


__all__ = [
    "AiAnalysisRunner",
    "AiRequest",
    "AiResponseError",
    "PHASE_ORDER",
    "PointResponse",
    "apply_phases",
    "apply_points",
    "build_request",
    "parse_ai_response",
    "parse_phase_response",
    "parse_point_response",
]
