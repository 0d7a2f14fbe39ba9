"""Verify core/shared/analysis modules are importable without PySide6.

These tests ensure the Qt decoupling is correctly implemented.
"""
from __future__ import annotations

import importlib
import sys

import pytest

HEADLESS_MODULES = [
    "shared.app_settings",
    "shared.models",
    "shared.types",
    "analysis.metrics",
    "core.viewport",
    "core.geometry",
    "core.minimap",
    "core.interaction",
    "core.snapping",
    "core.annotation",
    "core.results",
    "core.ai_results",
    "core.controller",
    "core.simulated",
]


class TestHeadlessImports:
    """Test that core modules can be imported without PySide6."""

    @pytest.mark.parametrize("module_name", HEADLESS_MODULES)
    def test_module_headless_import(self, monkeypatch, module_name):
        for mod in [k for k in sys.modules if k.split(".")[0] in ("core", "shared", "analysis")]:
            monkeypatch.delitem(sys.modules, mod, raising=False)

        monkeypatch.setitem(sys.modules, "PySide6", None)
        monkeypatch.setitem(sys.modules, "PySide6.QtCore", None)
        monkeypatch.setitem(sys.modules, "pyqtgraph", None)

        module = importlib.import_module(module_name)
        assert module is not None

    def test_controller_works_headless(self, monkeypatch, response_log):
        monkeypatch.setitem(sys.modules, "PySide6", None)
        monkeypatch.setitem(sys.modules, "PySide6.QtCore", None)

        from core.controller import GraphController

        controller = GraphController()
        controller.load_data(response_log)
        assert controller.viewport is not None
        controller.shutdown()
