"""
Shared data structures available to both the headless core and the GUI.
"""

from .models import ChannelInfo, DataPoint, ManualAnalysisResult, NamedPoint, ParsedCsvData, SampleSeries
from .types import AnnotationMode, SensorType

__all__ = [
    "AnnotationMode",
    "ChannelInfo",
    "DataPoint",
    "ManualAnalysisResult",
    "NamedPoint",
    "ParsedCsvData",
    "SampleSeries",
    "SensorType",
]
