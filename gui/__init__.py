__all__ = ["GraphWidget", "MainWindow", "MiniMapWidget"]

from .graph_widget import GraphWidget
from .main_window import MainWindow
from .minimap_widget import MiniMapWidget
