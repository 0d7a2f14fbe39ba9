from __future__ import annotations

import logging
from typing import Dict, List, Optional

import pyqtgraph as pg
from PySide6 import QtCore, QtGui, QtWidgets

from core.ai_results import AiService
from core.annotation import AnnotationEventType
from core.controller import ControllerEvent, ControllerEventType, GraphController
from core.results import ResultRow, RowKind
from core.viewport import ALL
from shared.models import ManualAnalysisResult, NamedPoint, ParsedCsvData
from shared.types import ManualRange, SensorType, SequentialPlacement, SinglePlacement
from .graph_widget import GraphWidget
from .minimap_widget import MiniMapWidget
from .types import GraphStyle

_RANGE_BUTTONS = (
    ("10분", 10 * 60_000.0),
    ("30분", 30 * 60_000.0),
    ("1시간", 60 * 60_000.0),
    ("3시간", 180 * 60_000.0),
    ("전체", ALL),
)
_LABEL_COLUMNS = 6


class MainWindow(QtWidgets.QMainWindow):
    """Graph page: plot, overview, mode controls and the results table."""

    def __init__(
        self,
        controller: Optional[GraphController] = None,
        *,
        ai_service: Optional[AiService] = None,
    ) -> None:
        super().__init__()
        if controller is None:
            controller = GraphController(dispatch=lambda fn: QtCore.QTimer.singleShot(0, fn))
        self._logger = logging.getLogger(__name__)
        self._controller = controller
        self._ai_service = ai_service
        self._style = GraphStyle()
        self._label_buttons: Dict[str, QtWidgets.QPushButton] = {}
        self._rows: List[ResultRow] = []
        self._updating = False

        self.setWindowTitle("ResponseScope")
        self.resize(1280, 800)
        self.statusBar()
        self._apply_palette()
        self._style_plot()
        self._init_ui()

        self._listener_token = controller.add_listener(self._on_controller_event)
        close_action = QtGui.QAction(self)
        close_action.setShortcut(QtGui.QKeySequence.Close)
        close_action.triggered.connect(self.close)
        self.addAction(close_action)
        self._refresh_all()

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------

    def _apply_palette(self) -> None:
        self.setStyleSheet(
            """
            QMainWindow { background-color: rgb(235,235,235); }
            QGroupBox {
                background-color: rgb(245,245,245);
                border: 1px solid rgb(160,160,160);
                border-radius: 4px;
                margin-top: 12px;
                padding: 6px;
                font-weight: bold;
            }
            QGroupBox::title {
                subcontrol-origin: margin;
                left: 8px;
                padding: 0px 4px 0px 4px;
                color: rgb(0,0,139);
            }
            QPushButton {
                background-color: rgb(250,250,250);
                border: 1px solid rgb(150,150,150);
                padding: 4px 8px;
            }
            QPushButton:checked {
                background-color: rgb(30,144,255);
                color: rgb(255,255,255);
            }
            QStatusBar { background-color: rgb(220,220,220); }
            """
        )

    def _style_plot(self) -> None:
        pg.setConfigOption("foreground", (0, 0, 139))
        pg.setConfigOptions(antialias=True)

    def _init_ui(self) -> None:
        central = QtWidgets.QWidget(self)
        root = QtWidgets.QHBoxLayout(central)
        root.setContentsMargins(6, 6, 6, 6)

        left = QtWidgets.QVBoxLayout()
        left.addLayout(self._build_toolbar())
        self.graph = GraphWidget(self._controller, style=self._style)
        self.minimap = MiniMapWidget(self._controller, style=self._style)
        self.graph.pointCommitted.connect(self._on_point_committed)
        left.addWidget(self.graph, stretch=1)
        left.addWidget(self.minimap)
        root.addLayout(left, stretch=3)

        side = QtWidgets.QVBoxLayout()
        side.addWidget(self._build_mode_group())
        side.addWidget(self._build_label_group())
        side.addWidget(self._build_results_group(), stretch=1)
        root.addLayout(side, stretch=2)
        self.setCentralWidget(central)

    def _build_toolbar(self) -> QtWidgets.QLayout:
        bar = QtWidgets.QHBoxLayout()
        self.channel_combo = QtWidgets.QComboBox()
        self.channel_combo.currentIndexChanged.connect(self._on_channel_changed)
        bar.addWidget(QtWidgets.QLabel("채널"))
        bar.addWidget(self.channel_combo)

        self.range_group = QtWidgets.QButtonGroup(self)
        self.range_group.setExclusive(True)
        for text, spec in _RANGE_BUTTONS:
            btn = QtWidgets.QPushButton(text)
            btn.setCheckable(True)
            btn.setProperty("range_spec", spec)
            btn.clicked.connect(lambda _checked=False, s=spec: self._controller.set_range(s))
            self.range_group.addButton(btn)
            bar.addWidget(btn)

        prev_btn = QtWidgets.QPushButton("◀")
        prev_btn.clicked.connect(lambda: self._controller.pan_page(-1))
        next_btn = QtWidgets.QPushButton("▶")
        next_btn.clicked.connect(lambda: self._controller.pan_page(1))
        self.prev_btn = prev_btn
        self.next_btn = next_btn
        bar.addWidget(prev_btn)
        bar.addWidget(next_btn)

        self.window_label = QtWidgets.QLabel("")
        bar.addWidget(self.window_label, stretch=1)
        return bar

    def _build_mode_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("분석")
        layout = QtWidgets.QGridLayout(group)

        self.sensor_combo = QtWidgets.QComboBox()
        for sensor in SensorType:
            self.sensor_combo.addItem(sensor.value, sensor)
        self.sensor_combo.currentIndexChanged.connect(self._on_sensor_changed)
        layout.addWidget(QtWidgets.QLabel("센서"), 0, 0)
        layout.addWidget(self.sensor_combo, 0, 1)

        self.reagent_check = QtWidgets.QCheckBox("시약식")
        self.reagent_check.toggled.connect(self._on_reagent_toggled)
        layout.addWidget(self.reagent_check, 0, 2)
        self.exclude_check = QtWidgets.QCheckBox("응답시간 제외")
        self.exclude_check.toggled.connect(self._on_exclude_toggled)
        layout.addWidget(self.exclude_check, 0, 3)

        self.range_mode_btn = QtWidgets.QPushButton("구간 분석")
        self.range_mode_btn.setCheckable(True)
        self.range_mode_btn.clicked.connect(lambda: self._run(self._controller.annotations.toggle_range_mode))
        self.sequential_btn = QtWidgets.QPushButton("순차 지정")
        self.sequential_btn.setCheckable(True)
        self.sequential_btn.clicked.connect(lambda: self._run(self._controller.annotations.toggle_sequential_placement))
        self.undo_btn = QtWidgets.QPushButton("되돌리기")
        self.undo_btn.clicked.connect(self._on_undo)
        self.reset_btn = QtWidgets.QPushButton("초기화")
        self.reset_btn.clicked.connect(self._on_reset)
        self.ai_btn = QtWidgets.QPushButton("AI 분석")
        self.ai_btn.clicked.connect(self._on_ai_clicked)
        self.ai_btn.setEnabled(self._ai_service is not None)

        layout.addWidget(self.range_mode_btn, 1, 0)
        layout.addWidget(self.sequential_btn, 1, 1)
        layout.addWidget(self.undo_btn, 1, 2)
        layout.addWidget(self.reset_btn, 1, 3)
        layout.addWidget(self.ai_btn, 2, 0)
        self.mode_label = QtWidgets.QLabel("")
        layout.addWidget(self.mode_label, 2, 1, 1, 3)
        return group

    def _build_label_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("포인트 지정")
        self._label_layout = QtWidgets.QGridLayout(group)
        return group

    def _build_results_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("결과")
        layout = QtWidgets.QVBoxLayout(group)
        self.results_table = QtWidgets.QTableWidget(0, 4)
        self.results_table.setHorizontalHeaderLabels(["구분", "항목", "시간", "값"])
        self.results_table.horizontalHeader().setStretchLastSection(True)
        self.results_table.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        self.results_table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        layout.addWidget(self.results_table)
        self.delete_btn = QtWidgets.QPushButton("선택 삭제")
        self.delete_btn.clicked.connect(self._on_delete_row)
        layout.addWidget(self.delete_btn)
        return group

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    @property
    def controller(self) -> GraphController:
        return self._controller

    def load_data(self, parsed: ParsedCsvData) -> None:
        self._controller.load_data(parsed)

    # ------------------------------------------------------------------
    # Controller notifications
    # ------------------------------------------------------------------

    def _on_controller_event(self, event: ControllerEvent) -> None:
        if event.event_type is ControllerEventType.GUIDE_CHANGED:
            return
        if event.event_type is ControllerEventType.DATA_CHANGED:
            self._refresh_all()
            return
        if event.event_type is ControllerEventType.AI_CHANGED:
            job = self._controller.job
            self.ai_btn.setEnabled(self._ai_service is not None and not job.is_ai_analyzing)
            if job.ai_error:
                self.statusBar().showMessage(f"AI 분석 오류: {job.ai_error}", 8000)
            elif job.is_ai_analyzing:
                self.statusBar().showMessage("AI 분석 중...")
            else:
                self.statusBar().clearMessage()
        annotation = event.data
        if getattr(annotation, "event_type", None) is AnnotationEventType.SENSOR_CHANGED:
            self._rebuild_label_buttons()
        if getattr(annotation, "event_type", None) is AnnotationEventType.PLACEMENT_COMPLETED:
            self.statusBar().showMessage("순차 지정 완료", 4000)
        self._refresh_controls()
        self._refresh_results()

    def _refresh_all(self) -> None:
        self._updating = True
        try:
            job = self._controller.job
            self.channel_combo.clear()
            if job.data is not None:
                for channel in job.data.channels:
                    self.channel_combo.addItem(channel.name, channel.id)
                idx = self.channel_combo.findData(job.selected_channel_id)
                self.channel_combo.setCurrentIndex(max(idx, 0))
            self.sensor_combo.setCurrentIndex(max(self.sensor_combo.findData(job.sensor_type), 0))
            self.exclude_check.setChecked(job.exclude_response_time)
        finally:
            self._updating = False
        self._rebuild_label_buttons()
        self._refresh_controls()
        self._refresh_results()
        self.graph.refresh()
        self.minimap.refresh(rebuild=True)

    def _rebuild_label_buttons(self) -> None:
        while self._label_layout.count():
            item = self._label_layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()
        self._label_buttons = {}
        for n, label in enumerate(self._controller.annotations.label_order):
            btn = QtWidgets.QPushButton(label)
            btn.setCheckable(True)
            btn.clicked.connect(lambda _checked=False, lb=label: self._on_label_clicked(lb))
            self._label_layout.addWidget(btn, n // _LABEL_COLUMNS, n % _LABEL_COLUMNS)
            self._label_buttons[label] = btn

    def _refresh_controls(self) -> None:
        job = self._controller.job
        annotations = self._controller.annotations
        viewport = self._controller.viewport
        mode = job.mode

        self._updating = True
        try:
            self.reagent_check.setEnabled(job.sensor_type is SensorType.CL)
            self.reagent_check.setChecked(job.is_reagent)
            self.range_mode_btn.setChecked(isinstance(mode, ManualRange))
            self.sequential_btn.setChecked(isinstance(mode, SequentialPlacement))
            for label, btn in self._label_buttons.items():
                btn.setChecked(isinstance(mode, SinglePlacement) and mode.label == label)
                btn.setStyleSheet("font-weight: bold;" if label in job.named_points else "")
            current = viewport.state.range_spec if viewport is not None else ALL
            self.range_group.setExclusive(False)
            for btn in self.range_group.buttons():
                btn.setChecked(btn.property("range_spec") == current)
            self.range_group.setExclusive(True)
        finally:
            self._updating = False

        if viewport is not None:
            self.window_label.setText(viewport.window_label())
            self.prev_btn.setEnabled(not viewport.is_at_start)
            self.next_btn.setEnabled(not viewport.is_at_end)
        else:
            self.window_label.setText("데이터 없음")
            self.prev_btn.setEnabled(False)
            self.next_btn.setEnabled(False)

        label = annotations.current_label
        if isinstance(mode, ManualRange):
            self.mode_label.setText("구간 분석: 시작점과 끝점을 클릭하세요")
        elif label is not None:
            self.mode_label.setText(f"지정할 포인트: {label}")
        else:
            self.mode_label.setText("")

    def _refresh_results(self) -> None:
        rows = self._controller.results()
        self._rows = rows
        table = self.results_table
        table.setRowCount(len(rows))
        for r, row in enumerate(rows):
            cells = (row.kind.value, row.label, row.time_text(), row.value_text())
            for c, text in enumerate(cells):
                table.setItem(r, c, QtWidgets.QTableWidgetItem(text))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _run(self, fn, *args) -> None:
        try:
            fn(*args)
        except ValueError as exc:
            self._logger.warning("Rejected action: %s", exc)
            self.statusBar().showMessage(str(exc), 5000)
            self._refresh_controls()

    def _on_channel_changed(self, index: int) -> None:
        if self._updating or index < 0:
            return
        self._run(self._controller.select_channel, self.channel_combo.itemData(index))

    def _on_sensor_changed(self, index: int) -> None:
        if self._updating or index < 0:
            return
        self._run(self._controller.annotations.set_sensor_type, self.sensor_combo.itemData(index))

    def _on_reagent_toggled(self, checked: bool) -> None:
        if self._updating or checked == self._controller.job.is_reagent:
            return
        self._controller.annotations.toggle_reagent()
        self._rebuild_label_buttons()
        self._refresh_controls()

    def _on_exclude_toggled(self, checked: bool) -> None:
        if self._updating:
            return
        self._controller.job.exclude_response_time = bool(checked)
        self._refresh_results()

    def _on_label_clicked(self, label: str) -> None:
        mode = self._controller.job.mode
        if isinstance(mode, SinglePlacement) and mode.label == label:
            self._run(self._controller.annotations.set_single_placement, None)
        else:
            self._run(self._controller.annotations.set_single_placement, label)

    def _on_undo(self) -> None:
        cid = self._controller.job.selected_channel_id
        if cid is not None:
            self._controller.annotations.undo_last_result(cid)

    def _on_reset(self) -> None:
        answer = QtWidgets.QMessageBox.question(self, "초기화", "모든 분석 결과와 포인트를 삭제할까요?")
        if answer == QtWidgets.QMessageBox.Yes:
            self._controller.annotations.reset_analysis()

    def _on_ai_clicked(self) -> None:
        if self._ai_service is None:
            return
        if not self._controller.request_ai_analysis(self._ai_service):
            error = self._controller.job.ai_error or "AI 분석을 시작할 수 없습니다"
            self.statusBar().showMessage(error, 5000)

    def _on_delete_row(self) -> None:
        row_index = self.results_table.currentRow()
        if not 0 <= row_index < len(self._rows):
            return
        row = self._rows[row_index]
        annotations = self._controller.annotations
        if row.kind is RowKind.MANUAL and row.channel_id is not None and row.result_id is not None:
            annotations.delete_manual_result(row.channel_id, row.result_id)
        elif row.kind is RowKind.POINT:
            annotations.remove_point(row.label)

    def _on_point_committed(self, committed: object) -> None:
        if isinstance(committed, NamedPoint):
            self.statusBar().showMessage(f"{committed.label} 지정: {committed.value:.3f}", 3000)
        elif isinstance(committed, ManualAnalysisResult):
            self.statusBar().showMessage(
                f"구간 분석: 최소 {committed.min:.3f} / 최대 {committed.max:.3f}", 3000
            )

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self._controller.remove_listener(self._listener_token)
        self._controller.shutdown()
        super().closeEvent(event)


__all__ = ["MainWindow"]
