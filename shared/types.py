"""
Sensor types, calibration label tables and annotation modes shared by the
headless core and the GUI.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class SensorType(Enum):
    """Instrument families with distinct calibration protocols."""

    SS = "SS"
    PH = "PH"
    TU = "TU"
    CL = "Cl"
    DO = "DO"

    @classmethod
    def parse(cls, value: Union[str, "SensorType"]) -> "SensorType":
        if isinstance(value, SensorType):
            return value
        text = str(value).strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        raise ValueError(f"unknown sensor type: {value!r}")


_PH_ORDER: Tuple[str, ...] = (
    "(A)_4_1", "(A)_4_2", "(A)_4_3", "(A)_7_1", "(A)_7_2", "(A)_7_3", "(A)_10_1", "(A)_10_2", "(A)_10_3",
    "(B)_7_1", "(B)_4_1", "(B)_7_2", "(B)_4_2", "(B)_7_3", "(B)_4_3",
    "(C)_4_1", "(C)_4_2", "(C)_4_3", "(C)_7_1", "(C)_7_2", "(C)_7_3",
    "(C)_4_4", "(C)_4_5", "(C)_4_6", "(C)_7_4", "(C)_7_5", "(C)_7_6",
    "4_10", "4_15", "4_20", "4_25", "4_30", "ST", "EN", "현장1", "현장2",
)

_SS_ORDER: Tuple[str, ...] = (
    "M1", "M2", "M3", "Z1", "Z2", "S1", "S2", "Z3", "Z4", "S3", "S4",
    "Z5", "S5", "Z6", "S6", "Z7", "S7", "현장1", "현장2",
)

_DO_ORDER: Tuple[str, ...] = (
    "(A)_S1", "(A)_S2", "(A)_S3", "S_1", "S_2", "S_3",
    "Z_1", "Z_2", "Z_3", "Z_4", "Z_5", "Z_6", "S_4", "S_5", "S_6",
    "20_S_1", "20_S_2", "20_S_3", "30_S_1", "30_S_2", "30_S_3", "ST", "EN",
)

DEFAULT_ORDER: Tuple[str, ...] = ("Z1", "Z2", "S1", "S2", "Z3", "Z4", "S3", "S4", "Z5", "S5", "M1", "ST", "EN")

RESPONSE_LABELS = ("ST", "EN")


def sequential_order(sensor_type: SensorType, *, reagent: bool = False) -> Tuple[str, ...]:
    """Ordered label list stepped through by sequential placement."""
    if sensor_type is SensorType.PH:
        return _PH_ORDER
    if sensor_type is SensorType.SS:
        return _SS_ORDER
    if sensor_type is SensorType.DO:
        return _DO_ORDER
    if sensor_type is SensorType.CL and reagent:
        return tuple(label for label in DEFAULT_ORDER if label not in RESPONSE_LABELS)
    return DEFAULT_ORDER


def valid_labels(sensor_type: SensorType, *, reagent: bool = False) -> frozenset:
    """Labels that may be committed for a sensor type."""
    return frozenset(sequential_order(sensor_type, reagent=reagent))


def normalize_label(label: str) -> str:
    """Canonical (upper-case) form of a point label; Hangul and digits are unaffected."""
    return str(label).strip().upper()


# ----------------------------
# Annotation modes
# ----------------------------

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class ManualRange:
    """Two-click max/min range selection on one channel."""

    channel_id: Optional[str] = None


@dataclass(frozen=True)
class SequentialPlacement:
    index: int = 0


@dataclass(frozen=True)
class SinglePlacement:
    label: str


AnnotationMode = Union[Idle, ManualRange, SequentialPlacement, SinglePlacement]

IDLE = Idle()


__all__ = [
    "AnnotationMode",
    "DEFAULT_ORDER",
    "IDLE",
    "Idle",
    "ManualRange",
    "RESPONSE_LABELS",
    "SensorType",
    "SequentialPlacement",
    "SinglePlacement",
    "normalize_label",
    "sequential_order",
    "valid_labels",
]
