from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
import threading
from typing import Any, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppSettings:
    """Interaction tunables for the graph page (pixels, milliseconds, ratios)."""

    default_range_ms: Union[str, float] = "all"
    min_window_ms: float = 60_000.0
    fine_pan_ms: float = 60_000.0
    page_pan_ratio: float = 0.25
    wheel_zoom_step: float = 1.1
    pinch_zoom_step: float = 1.05
    pinch_sensitivity: float = 0.02
    marker_hit_radius_px: float = 20.0
    guideline_hit_px: float = 8.0
    click_threshold_px: float = 15.0
    point_hit_tolerance_px: float = 30.0
    minimap_handle_px: float = 12.0
    minimap_grab_px: float = 20.0
    minimap_max_points: int = 2000
    ai_sample_stride: int = 10


class SettingsPersistence:
    """Storage backend for AppSettings. Subclasses return/accept plain dicts."""

    def load(self) -> Dict[str, Any]:
        raise NotImplementedError

    def save(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryPersistence(SettingsPersistence):
    """Volatile persistence used headless and in tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._data)

    def save(self, data: Dict[str, Any]) -> None:
        self._data.update(data)


def _coerce(name: str, raw: Any, default: Any) -> Any:
    # QSettings hands back strings on most platforms.
    if name == "default_range_ms":
        if raw is None or str(raw).lower() == "all":
            return "all"
        return float(raw)
    if isinstance(default, bool):
        return bool(int(raw)) if isinstance(raw, str) else bool(raw)
    if isinstance(default, int):
        return int(float(raw))
    if isinstance(default, float):
        return float(raw)
    return raw


class AppSettingsStore:
    """Thread-safe settings store with subscribe/replay notifications."""

    def __init__(self, *, persistence: Optional[SettingsPersistence] = None) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[AppSettings], None]] = {}
        self._next_token = 0
        self._persistence = persistence or InMemoryPersistence()
        self._settings = self._load_settings()

    def _load_settings(self) -> AppSettings:
        stored = self._persistence.load()
        defaults = AppSettings()
        values: Dict[str, Any] = {}
        for f in fields(AppSettings):
            if f.name not in stored:
                continue
            try:
                values[f.name] = _coerce(f.name, stored[f.name], getattr(defaults, f.name))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid stored setting %s=%r", f.name, stored[f.name])
        return replace(defaults, **values)

    def get(self) -> AppSettings:
        with self._lock:
            return self._settings

    def update(self, **kwargs) -> AppSettings:
        with self._lock:
            new_settings = replace(self._settings, **kwargs)
            self._settings = new_settings
            callbacks = list(self._subscribers.values())
            self._persistence.save(asdict(new_settings))
        for callback in callbacks:
            try:
                callback(new_settings)
            except Exception as exc:
                logger.debug("App settings subscriber callback failed: %s", exc)
                continue
        return new_settings

    def subscribe(self, callback: Callable[[AppSettings], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
            snapshot = self._settings
        if replay:
            callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe


__all__ = ["AppSettings", "AppSettingsStore", "InMemoryPersistence", "SettingsPersistence"]
