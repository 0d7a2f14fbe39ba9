"""GUI style definitions for the graph page.

Colours for the trace, overlays and markers, kept in one place so the graph
and minimap widgets stay consistent.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from PySide6 import QtGui


@dataclass
class GraphStyle:
    background: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(255, 255, 255))
    axis: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(0, 0, 139))
    trace: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(0, 0, 139))
    target_line: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(178, 34, 34))
    guide: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(90, 90, 90))
    response_band: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(30, 144, 255, 40))
    manual_band: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(255, 165, 0, 50))
    selection: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(255, 140, 0))
    minimap_window: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(30, 144, 255, 60))
    marker_colors: Dict[str, QtGui.QColor] = field(
        default_factory=lambda: {
            "Z": QtGui.QColor(34, 139, 34),
            "S": QtGui.QColor(178, 34, 34),
            "M": QtGui.QColor(128, 0, 128),
            "ST": QtGui.QColor(0, 128, 128),
            "EN": QtGui.QColor(0, 128, 128),
        }
    )
    default_marker: QtGui.QColor = field(default_factory=lambda: QtGui.QColor(0, 0, 0))

    def marker_color(self, label: str) -> QtGui.QColor:
        if label in self.marker_colors:
            return self.marker_colors[label]
        return self.marker_colors.get(label[:1], self.default_marker)


__all__ = ["GraphStyle"]
