"""GraphWidget - pyqtgraph rendering of the graph page.

Draws the selected channel's visible window, target lines, the ST-EN
response band, manual-analysis ranges, the guideline with its readout box
and the named-point markers. Pointer, wheel, key and touch events are passed
unchanged (widget pixels) to the GraphController, which owns all state.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import List, Optional

import pyqtgraph as pg
from PySide6 import QtCore, QtGui, QtWidgets

from core.controller import ControllerEvent, GraphController, RenderState
from core.geometry import Padding
from .types import GraphStyle

logger = logging.getLogger(__name__)

_KEY_NAMES = {
    QtCore.Qt.Key_Left: "left",
    QtCore.Qt.Key_Right: "right",
    QtCore.Qt.Key_PageUp: "pageup",
    QtCore.Qt.Key_PageDown: "pagedown",
    QtCore.Qt.Key_Escape: "escape",
}


class TimeAxis(pg.AxisItem):
    """Bottom axis labelling epoch-millisecond ticks as wall-clock time."""

    def tickStrings(self, values, scale, spacing):
        try:
            fmt = "%H:%M:%S" if spacing < 60_000 else "%m-%d %H:%M"
            return [datetime.fromtimestamp(float(v) / 1000.0).strftime(fmt) for v in values]
        except (OverflowError, OSError, ValueError) as exc:
            logger.debug("TimeAxis tickStrings failed: %s", exc)
            return super().tickStrings(values, scale, spacing)


class GraphViewBox(pg.ViewBox):
    """ViewBox that leaves every mouse event to the enclosing widget."""

    def __init__(self, *args, **kwargs) -> None:
        kwargs.setdefault("enableMenu", False)
        super().__init__(*args, **kwargs)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        event.ignore()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        event.ignore()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        event.ignore()

    def wheelEvent(self, event, axis=None) -> None:  # type: ignore[override]
        event.ignore()


class GraphWidget(pg.PlotWidget):
    """Interactive time-series plot driven by a GraphController."""

    pointCommitted = QtCore.Signal(object)

    def __init__(self, controller: GraphController, parent: Optional[QtWidgets.QWidget] = None,
                 style: Optional[GraphStyle] = None) -> None:
        view_box = GraphViewBox()
        super().__init__(parent, viewBox=view_box, axisItems={"bottom": TimeAxis("bottom")}, enableMenu=False)
        self._view_box = view_box
        self._controller = controller
        self._style = style or GraphStyle()
        self._transient: List[pg.GraphicsObject] = []
        self._build_plot()
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self.setMouseTracking(False)
        self.viewport().setAttribute(QtCore.Qt.WA_AcceptTouchEvents, True)
        self._listener_token = controller.add_listener(self._on_controller_event)

    def _build_plot(self) -> None:
        try:
            self.hideButtons()
        except Exception as exc:
            logger.debug("Failed to hide plot buttons: %s", exc)
        self.setMenuEnabled(False)
        self.setMouseEnabled(x=False, y=False)
        self.setBackground(self._style.background)

        plot_item = self.getPlotItem()
        plot_item.getAxis("left").setPen(pg.mkPen(self._style.axis))
        plot_item.getAxis("bottom").setPen(pg.mkPen(self._style.axis))
        plot_item.showGrid(x=True, y=True, alpha=0.3)
        plot_item.vb.setBorder(pg.mkPen(self._style.axis))

        self._curve = pg.PlotDataItem(pen=pg.mkPen(self._style.trace, width=1.5))
        self._curve.setClipToView(True)
        self._curve.setDownsampling(auto=True, method="peak")
        self.addItem(self._curve)

        self._guide_line = pg.InfiniteLine(angle=90, pen=pg.mkPen(self._style.guide, style=QtCore.Qt.DashLine))
        self._guide_line.setZValue(50)
        self.addItem(self._guide_line)
        self._guide_dot = pg.ScatterPlotItem(size=10, pen=pg.mkPen(self._style.guide), brush=pg.mkBrush(255, 255, 255))
        self._guide_dot.setZValue(51)
        self.addItem(self._guide_dot)
        self._readout = pg.TextItem("", color=(0, 0, 0), fill=pg.mkBrush(255, 255, 255, 220), anchor=(0.5, 0.0))
        self._readout.setZValue(60)
        self.addItem(self._readout)

        self._markers = pg.ScatterPlotItem(size=11, pen=pg.mkPen(255, 255, 255, width=1.5))
        self._markers.setZValue(70)
        self.addItem(self._markers)

    @property
    def controller(self) -> GraphController:
        return self._controller

    def set_controller(self, controller: GraphController) -> None:
        self._controller.remove_listener(self._listener_token)
        self._controller = controller
        self._listener_token = controller.add_listener(self._on_controller_event)
        self.refresh()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _on_controller_event(self, event: ControllerEvent) -> None:
        self.refresh()

    def _sync_geometry(self) -> None:
        rect = self.mapFromScene(self._view_box.sceneBoundingRect()).boundingRect()
        width = float(self.viewport().width())
        height = float(self.viewport().height())
        padding = Padding(
            top=float(rect.top()),
            right=max(width - float(rect.right()), 0.0),
            bottom=max(height - float(rect.bottom()), 0.0),
            left=float(rect.left()),
        )
        self._controller.set_size(width, height, padding)

    def _clear_transient(self) -> None:
        for item in self._transient:
            self.removeItem(item)
        self._transient = []

    def _add_transient(self, item: pg.GraphicsObject) -> None:
        self.addItem(item)
        self._transient.append(item)

    def refresh(self) -> None:
        self._sync_geometry()
        state = self._controller.render_state()
        self._clear_transient()
        geom = state.geometry
        if geom is None:
            self._curve.clear()
            self._markers.clear()
            self._guide_dot.clear()
            self._guide_line.setVisible(False)
            self._readout.setVisible(False)
            return
        self._view_box.setRange(xRange=(geom.t_min, geom.t_max), yRange=(geom.y_min, geom.y_max), padding=0)
        self._curve.setData(state.times, state.values)
        self._draw_overlays(state)
        self._draw_guide(state)
        self._draw_markers(state)

    def _draw_overlays(self, state: RenderState) -> None:
        style = self._style
        for line in state.target_lines:
            item = pg.InfiniteLine(
                pos=line.value,
                angle=0,
                pen=pg.mkPen(style.target_line, style=QtCore.Qt.DashLine),
                label=line.label,
                labelOpts={"position": 0.95, "color": style.target_line, "anchors": [(1, 1), (1, 1)]},
            )
            self._add_transient(item)
        if state.response_band is not None:
            band = pg.LinearRegionItem(values=state.response_band, movable=False, brush=pg.mkBrush(style.response_band))
            band.setZValue(-10)
            self._add_transient(band)
        for result in state.manual_results:
            region = pg.LinearRegionItem(
                values=(result.start_time, result.end_time),
                movable=False,
                brush=pg.mkBrush(style.manual_band),
            )
            region.setZValue(-9)
            self._add_transient(region)
        start = state.selection.start
        if start is not None:
            self._add_transient(pg.InfiniteLine(pos=start.timestamp, angle=90, pen=pg.mkPen(style.selection, width=2)))

    def _draw_guide(self, state: RenderState) -> None:
        geom = state.geometry
        sample = state.guide_sample
        if geom is None or state.guide_time is None:
            self._guide_line.setVisible(False)
            self._readout.setVisible(False)
            self._guide_dot.clear()
            return
        self._guide_line.setVisible(True)
        self._guide_line.setValue(state.guide_time)
        if sample is None:
            self._readout.setVisible(False)
            self._guide_dot.clear()
            return
        self._guide_dot.setData([sample.timestamp], [sample.value])
        text = f"{datetime.fromtimestamp(sample.timestamp / 1000.0):%H:%M:%S}  {sample.value:.3f}"
        if state.current_label is not None:
            text = f"[{state.current_label}] {text}"
        self._readout.setText(text)
        self._readout.setPos(state.guide_time, geom.y_to_value(geom.plot_top + 4.0))
        self._readout.setVisible(True)

    def _draw_markers(self, state: RenderState) -> None:
        spots = []
        for point in state.points:
            color = self._style.marker_color(point.label)
            spots.append({"pos": (point.timestamp, point.value), "brush": pg.mkBrush(color), "data": point.label})
            label = pg.TextItem(point.label, color=color, anchor=(0.5, 1.3))
            label.setPos(point.timestamp, point.value)
            self._add_transient(label)
        self._markers.setData(spots=spots)

    def grab_frame(self) -> QtGui.QImage:
        """Rasterise the current frame."""
        self.refresh()
        return self.grab().toImage()

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        QtCore.QTimer.singleShot(0, self.refresh)

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != QtCore.Qt.LeftButton:
            event.ignore()
            return
        self.setFocus()
        self._sync_geometry()
        pos = event.position()
        self._controller.pointer_press(pos.x(), pos.y())
        event.accept()

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        pos = event.position()
        self._controller.pointer_move(pos.x(), pos.y())
        event.accept()

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != QtCore.Qt.LeftButton:
            event.ignore()
            return
        pos = event.position()
        try:
            committed = self._controller.pointer_release(pos.x(), pos.y())
        except ValueError as exc:
            logger.warning("Point not placed: %s", exc)
            committed = None
        if committed is not None:
            self.pointCommitted.emit(committed)
        self.refresh()
        event.accept()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        self._controller.wheel(event.angleDelta().y())
        event.accept()

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # type: ignore[override]
        name = _KEY_NAMES.get(event.key())
        if name is not None and self._controller.key_press(name):
            event.accept()
            return
        super().keyPressEvent(event)

    def viewportEvent(self, event: QtCore.QEvent) -> bool:  # type: ignore[override]
        kind = event.type()
        if kind not in (QtCore.QEvent.TouchBegin, QtCore.QEvent.TouchUpdate, QtCore.QEvent.TouchEnd):
            return super().viewportEvent(event)
        points = event.points()
        if kind == QtCore.QEvent.TouchEnd or len(points) < 2:
            self._controller.pinch_end()
            return super().viewportEvent(event)
        a = points[0].position()
        b = points[1].position()
        distance = math.hypot(a.x() - b.x(), a.y() - b.y())
        if not self._controller.pointer.is_pinching:
            self._controller.pinch_start(distance)
        else:
            self._controller.pinch_move(distance)
        event.accept()
        return True


__all__ = ["GraphViewBox", "GraphWidget", "TimeAxis"]
