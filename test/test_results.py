"""
Unit tests for results table rows and metric helpers.
"""
from __future__ import annotations

import numpy as np
import pytest

from analysis.metrics import range_min_max, response_time_seconds
from core.annotation import AnnotationStateManager
from core.job import GraphJob
from core.results import RowKind, build_results
from shared.models import DataPoint
from shared.types import SensorType
from test.fixtures.series_generators import T0, make_parsed


@pytest.fixture
def manager() -> AnnotationStateManager:
    job = GraphJob(sensor_type=SensorType.TU)
    job.load_data(make_parsed(np.arange(120, dtype=np.float64), interval_ms=1000.0, extra_channels=1))
    return AnnotationStateManager(job)


def _pt(sec: float, value: float = 0.0) -> DataPoint:
    return DataPoint(T0 + sec * 1000.0, value)


class TestBuildResults:
    def test_empty_job(self, manager):
        assert build_results(manager.job) == []

    def test_response_row_first_then_sorted_by_start(self, manager):
        manager.place_point("ST", _pt(50))
        manager.place_point("EN", _pt(95.6))
        manager.place_point("Z1", _pt(10))
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(30))
        manager.complete_range_selection(_pt(40))

        rows = build_results(manager.job)
        assert rows[0].kind is RowKind.RESPONSE
        assert rows[0].label == "ST → EN"
        assert rows[0].response_seconds == 46
        assert [r.label for r in rows[1:]] == ["Z1", "구간 1", "ST", "EN"]
        manual = rows[2]
        assert (manual.min, manual.max, manual.diff) == (30.0, 40.0, 10.0)

    def test_response_row_needs_both_points(self, manager):
        manager.place_point("ST", _pt(50))
        rows = build_results(manager.job)
        assert all(r.kind is not RowKind.RESPONSE for r in rows)

    def test_exclude_response_time(self, manager):
        manager.place_point("ST", _pt(50))
        manager.place_point("EN", _pt(60))
        manager.job.exclude_response_time = True
        assert [r.kind for r in build_results(manager.job)] == [RowKind.POINT, RowKind.POINT]

    def test_only_selected_channel_manual_rows(self, manager):
        manager.start_range_selection("ch2")
        manager.complete_range_selection(_pt(1))
        manager.complete_range_selection(_pt(5))
        assert build_results(manager.job) == []
        manager.job.selected_channel_id = "ch2"
        rows = build_results(manager.job)
        assert [r.label for r in rows] == ["구간 1"]
        assert rows[0].channel_id == "ch2"

    def test_manual_numbering_follows_creation_order(self, manager):
        manager.start_range_selection("ch1")
        for a, b in [(60, 70), (10, 20)]:
            manager.complete_range_selection(_pt(a))
            manager.complete_range_selection(_pt(b))
        rows = build_results(manager.job)
        assert [r.label for r in rows] == ["구간 2", "구간 1"]

    def test_value_text(self, manager):
        manager.place_point("ST", _pt(0))
        manager.place_point("EN", _pt(30))
        rows = build_results(manager.job)
        assert rows[0].value_text() == "30 초"
        assert rows[1].value_text() == "0.000"


class TestMetrics:
    def test_range_min_max_inclusive(self):
        t = np.array([0.0, 1.0, 2.0, 3.0])
        v = np.array([2.0, 5.0, 1.0, 9.0])
        assert range_min_max(t, v, 0.0, 2.0) == (1.0, 5.0)
        assert range_min_max(t, v, 2.0, 0.0) == (1.0, 5.0)

    def test_range_min_max_skips_missing(self):
        t = np.array([0.0, 1.0, 2.0])
        v = np.array([np.nan, 4.0, np.nan])
        assert range_min_max(t, v, 0.0, 2.0) == (4.0, 4.0)
        assert range_min_max(t, v, 1.5, 2.0) is None

    @pytest.mark.parametrize(
        "start, end, expected",
        [(0.0, 30_000.0, 30), (0.0, 30_400.0, 30), (0.0, 30_600.0, 31), (1_000.0, 1_000.0, 0)],
    )
    def test_response_time_seconds(self, start, end, expected):
        assert response_time_seconds(start, end) == expected
