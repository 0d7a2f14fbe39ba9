"""GraphJob - the per-job record the graph page works on.

The record is owned by the page-level store; the core mutates it only through
AnnotationStateManager / GraphController operations.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from shared.models import ChannelAnalysisState, DataPoint, NamedPoint, ParsedCsvData, Phase, RangeSelection
from shared.types import IDLE, AnnotationMode, SensorType
from .viewport import ALL, ViewportState


@dataclass
class GraphJob:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    receipt_number: str = ""
    sensor_type: SensorType = SensorType.TU
    data: Optional[ParsedCsvData] = None
    file_name: Optional[str] = None
    selected_channel_id: Optional[str] = None
    viewport: ViewportState = field(default_factory=ViewportState)
    channel_analysis: Dict[str, ChannelAnalysisState] = field(default_factory=dict)
    named_points: Dict[str, NamedPoint] = field(default_factory=dict)
    mode: AnnotationMode = IDLE
    ai_phases: Optional[List[Phase]] = None
    ai_response_start: Optional[DataPoint] = None
    ai_response_end: Optional[DataPoint] = None
    ai_error: Optional[str] = None
    is_ai_analyzing: bool = False
    is_reagent: bool = False
    exclude_response_time: bool = False

    def analysis_for(self, channel_id: str) -> ChannelAnalysisState:
        state = self.channel_analysis.get(channel_id)
        if state is None:
            state = ChannelAnalysisState()
            self.channel_analysis[channel_id] = state
        return state

    @property
    def selected_channel_index(self) -> int:
        if self.data is None or self.selected_channel_id is None:
            return -1
        return self.data.channel_index(self.selected_channel_id)

    def load_data(self, parsed: ParsedCsvData) -> None:
        """Attach freshly parsed data; reloading the same file keeps the analysis."""
        same_file = self.file_name is not None and self.file_name == parsed.file_name
        self.data = parsed
        self.file_name = parsed.file_name
        self.mode = IDLE
        if same_file:
            for state in self.channel_analysis.values():
                state.selection = RangeSelection()
            if self.selected_channel_index == -1:
                self.selected_channel_id = parsed.channels[0].id
            return
        self.channel_analysis = {}
        self.selected_channel_id = parsed.channels[0].id
        self.viewport = ViewportState(view_end=None, range_spec=ALL)

    def clear_data(self) -> None:
        self.data = None
        self.file_name = None
        self.channel_analysis = {}
        self.selected_channel_id = None
        self.viewport = ViewportState()
        self.mode = IDLE


__all__ = ["GraphJob"]
