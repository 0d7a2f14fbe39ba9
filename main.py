import sys

from PySide6 import QtCore
from PySide6.QtWidgets import QApplication

from core.controller import GraphController
from core.simulated import make_response_log
from gui import MainWindow
from gui.qsettings_adapter import create_gui_settings_store


def main() -> int:
    app = QApplication(sys.argv)
    app.setApplicationName("ResponseScope")
    controller = GraphController(
        settings_store=create_gui_settings_store(),
        dispatch=lambda fn: QtCore.QTimer.singleShot(0, fn),
    )
    controller.load_data(make_response_log())
    window = MainWindow(controller)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
