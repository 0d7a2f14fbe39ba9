from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

Timestamp = Union[float, int, datetime, np.datetime64]


def to_epoch_ms(value: Timestamp) -> float:
    """Normalise a timestamp (datetime, numpy datetime64 or number) to epoch milliseconds."""
    if isinstance(value, datetime):
        return value.timestamp() * 1000.0
    if isinstance(value, np.datetime64):
        return float(value.astype("datetime64[us]").astype(np.int64)) / 1000.0
    return float(value)


def from_epoch_ms(value: float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000.0)


def _freeze_array(array: np.ndarray, *, ndim: int | None = None, dtype=np.float64) -> np.ndarray:
    """Return a read-only, C-contiguous copy of `array`, validating dimensions."""
    arr = np.array(array, dtype=dtype, copy=True, order="C")
    if ndim is not None and arr.ndim != ndim:
        raise ValueError(f"array must be {ndim}D, got {arr.ndim}D")
    arr.setflags(write=False)
    return arr


# ----------------------------
# Channel / sample data
# ----------------------------

@dataclass(frozen=True)
class ChannelInfo:
    """A single recorded channel."""

    id: str
    name: str
    unit: str = ""


@dataclass(frozen=True)
class Sample:
    """One row of a sensor log: a timestamp and one reading per channel (None = missing)."""

    timestamp: Timestamp
    values: Tuple[Optional[float], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class TimeWindow:
    """Full time extent of a series in epoch milliseconds."""

    full_min: float
    full_max: float

    def __post_init__(self) -> None:
        if self.full_max < self.full_min:
            raise ValueError("full_max must be >= full_min")

    @property
    def span(self) -> float:
        return self.full_max - self.full_min


@dataclass(frozen=True)
class SampleSeries:
    """Immutable column-oriented store of a multi-channel sensor log.

    `timestamps_ms` has shape (n,) and `values` has shape (n, n_channels);
    missing readings are NaN. Rows are kept sorted by timestamp.
    """

    timestamps_ms: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        ts = np.asarray(self.timestamps_ms, dtype=np.float64)
        vals = np.asarray(self.values, dtype=np.float64)
        if ts.ndim != 1:
            raise ValueError(f"timestamps must be 1D, got {ts.ndim}D")
        if vals.ndim == 1:
            vals = vals.reshape(-1, 1)
        if vals.ndim != 2:
            raise ValueError(f"values must be 2D, got {vals.ndim}D")
        if vals.shape[0] != ts.shape[0]:
            raise ValueError("values shape mismatch: axis 0 must match len(timestamps_ms)")
        order = np.argsort(ts, kind="stable")
        object.__setattr__(self, "timestamps_ms", _freeze_array(ts[order], ndim=1))
        object.__setattr__(self, "values", _freeze_array(vals[order], ndim=2))

    @classmethod
    def from_samples(cls, samples: Sequence[Sample], channel_count: Optional[int] = None) -> "SampleSeries":
        if channel_count is None:
            channel_count = len(samples[0].values) if samples else 0
        ts = np.empty(len(samples), dtype=np.float64)
        vals = np.full((len(samples), channel_count), np.nan, dtype=np.float64)
        for row, sample in enumerate(samples):
            if len(sample.values) != channel_count:
                raise ValueError(
                    f"sample {row} has {len(sample.values)} values, expected {channel_count}"
                )
            ts[row] = to_epoch_ms(sample.timestamp)
            for col, value in enumerate(sample.values):
                if value is not None:
                    vals[row, col] = float(value)
        return cls(ts, vals)

    @property
    def n_samples(self) -> int:
        return int(self.timestamps_ms.shape[0])

    @property
    def n_channels(self) -> int:
        return int(self.values.shape[1])

    def time_window(self) -> Optional[TimeWindow]:
        """Full extent, or None when fewer than two samples are present."""
        if self.n_samples < 2:
            return None
        return TimeWindow(float(self.timestamps_ms[0]), float(self.timestamps_ms[-1]))

    def channel(self, index: int) -> Tuple[np.ndarray, np.ndarray]:
        """Return (timestamps, values) of one channel with missing readings dropped."""
        if not 0 <= index < self.n_channels:
            raise ValueError(f"channel index {index} out of range")
        col = self.values[:, index]
        mask = np.isfinite(col)
        return self.timestamps_ms[mask], col[mask]

    def slice_time(self, start_ms: float, end_ms: float) -> "SampleSeries":
        lo = int(np.searchsorted(self.timestamps_ms, start_ms, side="left"))
        hi = int(np.searchsorted(self.timestamps_ms, end_ms, side="right"))
        return SampleSeries(self.timestamps_ms[lo:hi], self.values[lo:hi])


@dataclass(frozen=True)
class ParsedCsvData:
    """Output of the external log parser."""

    channels: Tuple[ChannelInfo, ...]
    series: SampleSeries
    file_name: str = ""
    measurement_range: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", tuple(self.channels))
        if not self.channels:
            raise ValueError("channels must not be empty")
        if self.series.n_samples and self.series.n_channels != len(self.channels):
            raise ValueError("series channel count must match len(channels)")

    def channel_index(self, channel_id: str) -> int:
        for idx, ch in enumerate(self.channels):
            if ch.id == channel_id:
                return idx
        return -1


# ----------------------------
# Annotation data
# ----------------------------

@dataclass(frozen=True)
class DataPoint:
    """A (timestamp, value) pair picked on a channel."""

    timestamp: float
    value: float


@dataclass(frozen=True)
class NamedPoint:
    """A labelled calibration point (Z1, S1, ST, EN, ...)."""

    label: str
    timestamp: float
    value: float

    @property
    def point(self) -> DataPoint:
        return DataPoint(self.timestamp, self.value)


@dataclass(frozen=True)
class RangeSelection:
    start: Optional[DataPoint] = None
    end: Optional[DataPoint] = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class ManualAnalysisResult:
    """Min/max statistics over a manually selected time range."""

    start_time: float
    end_time: float
    min: float
    max: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError("end_time must be >= start_time")
        if self.max < self.min:
            raise ValueError("max must be >= min")

    @property
    def diff(self) -> float:
        return self.max - self.min


@dataclass
class ChannelAnalysisState:
    """Per-channel manual analysis bookkeeping."""

    is_analyzing: bool = False
    selection: RangeSelection = field(default_factory=RangeSelection)
    results: List[ManualAnalysisResult] = field(default_factory=list)


@dataclass(frozen=True)
class Phase:
    """A named time range returned by the phase analysis service."""

    name: str
    start_time: float
    end_time: float


__all__ = [
    "ChannelAnalysisState",
    "ChannelInfo",
    "DataPoint",
    "ManualAnalysisResult",
    "NamedPoint",
    "ParsedCsvData",
    "Phase",
    "RangeSelection",
    "Sample",
    "SampleSeries",
    "TimeWindow",
    "from_epoch_ms",
    "to_epoch_ms",
]
