"""Synthetic calibration logs for demos.

Builds a ParsedCsvData that walks through zero / span plateaus with
exponential step responses, the shape an operator annotates on a real
instrument log.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence, Tuple

import numpy as np

from shared.models import ChannelInfo, ParsedCsvData, SampleSeries, to_epoch_ms

DEFAULT_LEVELS: Tuple[float, ...] = (0.0, 0.0, 8.0, 8.0, 0.0, 0.0, 8.0, 8.0, 0.0, 8.0, 4.0)


def make_response_log(
    *,
    levels: Sequence[float] = DEFAULT_LEVELS,
    plateau_sec: float = 600.0,
    interval_sec: float = 10.0,
    tau_sec: float = 60.0,
    noise: float = 0.02,
    start: Optional[datetime] = None,
    seed: int = 0,
    file_name: str = "simulated.csv",
    measurement_range: Optional[float] = 10.0,
) -> ParsedCsvData:
    """Two-channel log: a first-order response to `levels` and a temperature trace.

    Each level is held for `plateau_sec`; the reading approaches it with time
    constant `tau_sec`. A short gap of missing readings is inserted in the
    middle of the log.
    """
    rng = np.random.default_rng(seed)
    per_level = max(int(plateau_sec / interval_sec), 1)
    n = per_level * len(levels)
    t0 = to_epoch_ms(start or datetime(2024, 1, 1, 9, 0, 0))
    times = t0 + np.arange(n, dtype=np.float64) * interval_sec * 1000.0

    setpoint = np.repeat(np.asarray(levels, dtype=np.float64), per_level)
    alpha = 1.0 - np.exp(-interval_sec / tau_sec)
    reading = np.empty(n, dtype=np.float64)
    current = setpoint[0]
    for i in range(n):
        current += alpha * (setpoint[i] - current)
        reading[i] = current
    reading += rng.normal(0.0, noise, n)

    temperature = 21.0 + 0.5 * np.sin(np.linspace(0.0, 4.0 * np.pi, n)) + rng.normal(0.0, 0.05, n)

    values = np.column_stack([reading, temperature])
    gap = n // 2
    values[gap:gap + 3, 0] = np.nan

    channels = (ChannelInfo("ch1", "측정값", "NTU"), ChannelInfo("ch2", "온도", "°C"))
    return ParsedCsvData(
        channels=channels,
        series=SampleSeries(times, values),
        file_name=file_name,
        measurement_range=measurement_range,
    )


__all__ = ["DEFAULT_LEVELS", "make_response_log"]
