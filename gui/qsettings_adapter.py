"""QSettings-backed persistence adapter for AppSettings.

Keeps PySide6 out of the shared module; the GUI builds its settings store
through ``create_gui_settings_store`` so interaction tunables persist across
restarts.
"""
from __future__ import annotations

from dataclasses import fields
from typing import Optional

from PySide6.QtCore import QSettings

from shared.app_settings import AppSettings, AppSettingsStore, SettingsPersistence


class QSettingsPersistence(SettingsPersistence):
    """QSettings-backed persistence for GUI mode."""

    def __init__(
        self,
        organization: str = "ResponseScope",
        application: str = "ResponseScope",
        *,
        group: Optional[str] = "graph",
    ) -> None:
        self._qsettings = QSettings(organization, application)
        self._group = group
        self._field_names = [f.name for f in fields(AppSettings)]

    def _key(self, name: str) -> str:
        return f"{self._group}/{name}" if self._group else name

    def load(self) -> dict:
        data = {}
        for name in self._field_names:
            val = self._qsettings.value(self._key(name))
            if val is not None:
                data[name] = val
        return data

    def save(self, data: dict) -> None:
        for key, val in data.items():
            if val is None:
                self._qsettings.remove(self._key(key))
            else:
                self._qsettings.setValue(self._key(key), val)


def create_gui_settings_store() -> AppSettingsStore:
    return AppSettingsStore(persistence=QSettingsPersistence())


__all__ = ["QSettingsPersistence", "create_gui_settings_store"]
