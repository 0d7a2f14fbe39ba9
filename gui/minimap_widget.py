"""MiniMapWidget - full-range overview strip under the graph."""
from __future__ import annotations

import logging
from typing import Optional

import pyqtgraph as pg
from PySide6 import QtCore, QtGui, QtWidgets

from core.controller import ControllerEvent, ControllerEventType, GraphController
from core.minimap import DragMode
from .graph_widget import GraphViewBox
from .types import GraphStyle

logger = logging.getLogger(__name__)


class MiniMapWidget(pg.PlotWidget):
    """Decimated overview of the selected channel with the visible window highlighted."""

    def __init__(self, controller: GraphController, parent: Optional[QtWidgets.QWidget] = None,
                 style: Optional[GraphStyle] = None) -> None:
        view_box = GraphViewBox()
        super().__init__(parent, viewBox=view_box, enableMenu=False)
        self._view_box = view_box
        self._controller = controller
        self._style = style or GraphStyle()
        self.setFixedHeight(70)
        try:
            self.hideButtons()
        except Exception as exc:
            logger.debug("Failed to hide plot buttons: %s", exc)
        self.setMenuEnabled(False)
        self.setMouseEnabled(x=False, y=False)
        self.setBackground(self._style.background)
        plot_item = self.getPlotItem()
        plot_item.hideAxis("left")
        plot_item.hideAxis("bottom")
        plot_item.setContentsMargins(0, 0, 0, 0)

        self._curve = pg.PlotDataItem(pen=pg.mkPen(self._style.trace, width=1))
        self.addItem(self._curve)
        self._window = pg.LinearRegionItem(movable=False, brush=pg.mkBrush(self._style.minimap_window))
        self.addItem(self._window)
        self._listener_token = controller.add_listener(self._on_controller_event)

    def set_controller(self, controller: GraphController) -> None:
        self._controller.remove_listener(self._listener_token)
        self._controller = controller
        self._listener_token = controller.add_listener(self._on_controller_event)
        self.refresh(rebuild=True)

    def _on_controller_event(self, event: ControllerEvent) -> None:
        rebuild = event.event_type is ControllerEventType.DATA_CHANGED
        if rebuild or event.event_type is ControllerEventType.VIEW_CHANGED:
            self.refresh(rebuild=rebuild)

    def _plot_rect(self) -> QtCore.QRect:
        return self.mapFromScene(self._view_box.sceneBoundingRect()).boundingRect()

    def refresh(self, *, rebuild: bool = False) -> None:
        viewport = self._controller.viewport
        if viewport is None:
            self._curve.clear()
            self._window.setVisible(False)
            return
        self._controller.set_minimap_width(float(self._plot_rect().width()))
        if rebuild:
            times, values = self._controller.minimap_trace()
            self._curve.setData(times, values)
            lo, hi = self._controller.y_bounds()
            self._view_box.setRange(
                xRange=(viewport.window.full_min, viewport.window.full_max),
                yRange=(lo, hi),
                padding=0,
            )
        self._window.setRegion(viewport.visible_range())
        self._window.setVisible(True)

    def _local_x(self, event: QtGui.QMouseEvent) -> float:
        return float(event.position().x()) - float(self._plot_rect().left())

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        QtCore.QTimer.singleShot(0, lambda: self.refresh(rebuild=True))

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != QtCore.Qt.LeftButton:
            event.ignore()
            return
        self._controller.set_minimap_width(float(self._plot_rect().width()))
        mode = self._controller.minimap_press(self._local_x(event))
        if mode in (DragMode.LEFT, DragMode.RIGHT):
            self.setCursor(QtCore.Qt.SizeHorCursor)
        elif mode is DragMode.MOVE:
            self.setCursor(QtCore.Qt.ClosedHandCursor)
        event.accept()

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        self._controller.minimap_move(self._local_x(event))
        event.accept()

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        self._controller.minimap_release()
        self.unsetCursor()
        event.accept()

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:  # type: ignore[override]
        event.ignore()


__all__ = ["MiniMapWidget"]
