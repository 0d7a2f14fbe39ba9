"""Headless graph-page core: viewport, gestures, snapping and annotations."""

from .annotation import AnnotationEvent, AnnotationEventType, AnnotationStateManager
from .controller import ControllerEvent, ControllerEventType, GraphController, RenderState
from .geometry import Padding, PlotGeometry, auto_y_bounds
from .interaction import GestureState, PointerStateMachine
from .job import GraphJob
from .minimap import DragMode, MiniMapNavigator
from .results import ResultRow, RowKind, build_results
from .snapping import snap_point, target_lines
from .viewport import ALL, ViewportModel, ViewportState

__all__ = [
    "ALL",
    "AnnotationEvent",
    "AnnotationEventType",
    "AnnotationStateManager",
    "ControllerEvent",
    "ControllerEventType",
    "DragMode",
    "GestureState",
    "GraphController",
    "GraphJob",
    "MiniMapNavigator",
    "Padding",
    "PlotGeometry",
    "PointerStateMachine",
    "RenderState",
    "ResultRow",
    "RowKind",
    "ViewportModel",
    "ViewportState",
    "auto_y_bounds",
    "build_results",
    "snap_point",
    "target_lines",
]
