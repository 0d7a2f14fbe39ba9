"""
Unit tests for AnnotationStateManager modes, placement and manual ranges.
"""
from __future__ import annotations

import numpy as np
import pytest

from core.annotation import AnnotationEventType, AnnotationStateManager
from core.job import GraphJob
from shared.models import DataPoint, NamedPoint
from shared.types import (
    IDLE,
    ManualRange,
    SensorType,
    SequentialPlacement,
    SinglePlacement,
    sequential_order,
)
from test.fixtures.series_generators import T0, make_parsed


@pytest.fixture
def job() -> GraphJob:
    job = GraphJob(sensor_type=SensorType.TU)
    job.load_data(make_parsed([0.0, 2.0, 5.0, 1.0, 0.0], interval_ms=1000.0))
    return job


@pytest.fixture
def manager(job) -> AnnotationStateManager:
    return AnnotationStateManager(job)


def _pt(i: int, value: float) -> DataPoint:
    return DataPoint(T0 + i * 1000.0, value)


class TestSequentialPlacement:
    def test_walks_every_label_then_deactivates(self, manager, job):
        order = sequential_order(SensorType.TU)
        manager.toggle_sequential_placement()
        for n, label in enumerate(order):
            assert manager.current_label == label
            manager.place_point(label, _pt(0, float(n)))
        assert job.mode == IDLE
        assert set(job.named_points) == set(order)

    def test_completion_event(self, manager):
        events = []
        manager.add_listener(lambda e: events.append(e.event_type))
        manager.toggle_sequential_placement()
        for label in sequential_order(SensorType.TU):
            manager.place_point(label, _pt(0, 1.0))
        assert events.count(AnnotationEventType.PLACEMENT_COMPLETED) == 1

    def test_placing_other_label_does_not_advance(self, manager, job):
        manager.toggle_sequential_placement()
        manager.place_point("S1", _pt(1, 2.0))
        assert job.mode == SequentialPlacement(0)
        assert "S1" in job.named_points

    def test_toggle_twice_returns_to_idle(self, manager, job):
        manager.toggle_sequential_placement()
        manager.toggle_sequential_placement()
        assert job.mode == IDLE


class TestPlacePoint:
    def test_invalid_label_rejected(self, manager):
        with pytest.raises(ValueError):
            manager.place_point("(A)_4_1", _pt(0, 1.0))

    def test_label_is_normalized(self, manager, job):
        manager.place_point(" z1 ", _pt(0, 1.0))
        assert job.named_points["Z1"] == NamedPoint("Z1", T0, 1.0)

    def test_replacement_overwrites(self, manager, job):
        manager.place_point("Z1", _pt(0, 1.0))
        manager.place_point("Z1", _pt(2, 5.0))
        assert job.named_points["Z1"].value == 5.0
        assert len(job.named_points) == 1

    def test_single_placement_returns_to_idle(self, manager, job):
        manager.set_single_placement("S1")
        assert job.mode == SinglePlacement("S1")
        manager.place_at_cursor(_pt(2, 5.0))
        assert job.named_points["S1"].value == 5.0
        assert job.mode == IDLE

    def test_single_placement_rejects_unknown_label(self, manager):
        with pytest.raises(ValueError):
            manager.set_single_placement("NOPE")

    def test_place_at_cursor_idle_is_noop(self, manager, job):
        assert manager.place_at_cursor(_pt(1, 2.0)) is None
        assert job.named_points == {}

    def test_remove_point(self, manager, job):
        manager.place_point("Z1", _pt(0, 1.0))
        assert manager.remove_point("z1")
        assert not manager.remove_point("Z1")
        assert job.named_points == {}


class TestRangeSelection:
    def test_two_clicks_produce_min_max(self, manager, job):
        manager.start_range_selection("ch1")
        assert manager.complete_range_selection(_pt(1, 2.0)) is None
        assert manager.selection("ch1").start == _pt(1, 2.0)
        result = manager.complete_range_selection(_pt(3, 1.0))
        assert (result.min, result.max, result.diff) == (1.0, 5.0, 4.0)
        assert manager.results("ch1") == (result,)
        assert manager.selection("ch1").is_empty

    def test_reversed_clicks_are_ordered(self, manager):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(3, 1.0))
        result = manager.complete_range_selection(_pt(1, 2.0))
        assert result.start_time < result.end_time
        assert (result.min, result.max) == (1.0, 5.0)

    def test_empty_range_is_discarded(self, manager, job):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(DataPoint(T0 + 1200.0, 0.0))
        assert manager.complete_range_selection(DataPoint(T0 + 1800.0, 0.0)) is None
        assert manager.results("ch1") == ()

    def test_delete_by_id_keeps_order(self, manager):
        manager.start_range_selection("ch1")
        made = []
        for a, b in [(0, 1), (1, 2), (2, 3), (3, 4)]:
            manager.complete_range_selection(_pt(a, 0.0))
            made.append(manager.complete_range_selection(_pt(b, 0.0)))
        assert manager.delete_manual_result("ch1", made[1].id)
        assert manager.results("ch1") == (made[0], made[2], made[3])
        assert not manager.delete_manual_result("ch1", made[1].id)

    def test_undo_last_result(self, manager):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(0, 0.0))
        first = manager.complete_range_selection(_pt(2, 0.0))
        manager.complete_range_selection(_pt(2, 0.0))
        second = manager.complete_range_selection(_pt(4, 0.0))
        assert manager.undo_last_result("ch1") == second
        assert manager.results("ch1") == (first,)

    def test_cancel_selection(self, manager):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(1, 2.0))
        manager.cancel_selection("ch1")
        assert manager.selection("ch1").is_empty

    def test_toggle_range_mode_uses_selected_channel(self, manager, job):
        manager.toggle_range_mode()
        assert job.mode == ManualRange("ch1")
        manager.toggle_range_mode()
        assert job.mode == IDLE


class TestModeExclusivity:
    def test_entering_mode_clears_selections_not_results(self, manager, job):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(0, 0.0))
        kept = manager.complete_range_selection(_pt(4, 0.0))
        manager.complete_range_selection(_pt(1, 0.0))
        manager.place_point("Z1", _pt(0, 0.0))

        manager.toggle_sequential_placement()

        assert isinstance(job.mode, SequentialPlacement)
        assert manager.selection("ch1").is_empty
        assert manager.results("ch1") == (kept,)
        assert "Z1" in job.named_points

    def test_reset_analysis_clears_everything(self, manager, job):
        manager.start_range_selection("ch1")
        manager.complete_range_selection(_pt(0, 0.0))
        manager.complete_range_selection(_pt(4, 0.0))
        manager.place_point("Z1", _pt(0, 0.0))
        manager.reset_analysis()
        assert job.mode == IDLE
        assert job.named_points == {}
        assert manager.results("ch1") == ()

    def test_toggle_analysis_mode_leaves_range_mode(self, manager, job):
        manager.start_range_selection("ch1")
        manager.toggle_analysis_mode("ch1")
        assert job.analysis_for("ch1").is_analyzing
        assert job.mode == IDLE


class TestSensorAndReagent:
    def test_reagent_removes_response_points(self, manager, job):
        manager.set_sensor_type("Cl")
        manager.place_point("ST", _pt(0, 0.0))
        manager.place_point("EN", _pt(4, 0.0))
        manager.place_point("S1", _pt(2, 5.0))
        assert manager.toggle_reagent() is True
        assert set(job.named_points) == {"S1"}
        assert "ST" not in manager.label_order
        with pytest.raises(ValueError):
            manager.place_point("EN", _pt(4, 0.0))

    def test_reagent_only_for_chlorine(self, manager, job):
        assert manager.toggle_reagent() is False
        assert not job.is_reagent

    def test_switching_sensor_clears_reagent_and_placement(self, manager, job):
        manager.set_sensor_type(SensorType.CL)
        manager.toggle_reagent()
        manager.toggle_sequential_placement()
        manager.set_sensor_type("PH")
        assert job.sensor_type is SensorType.PH
        assert not job.is_reagent
        assert job.mode == IDLE
        assert manager.label_order[0] == "(A)_4_1"

    def test_en_placement_snaps_on_selected_channel(self):
        values = np.array([7.0, 7.0, 7.0, 9.0, 9.5, 9.8, 9.9])
        job = GraphJob(sensor_type=SensorType.PH)
        job.load_data(make_parsed(values, interval_ms=10.0))
        manager = AnnotationStateManager(job)
        manager.place_point("ST", DataPoint(T0 + 20.0, 7.0))
        manager.set_single_placement("EN")
        placed = manager.place_at_cursor(DataPoint(T0 + 45.0, 9.6))
        assert placed == NamedPoint("EN", T0 + 50.0, 9.8)

    def test_label_placement_lands_on_recorded_sample(self, manager, job):
        manager.set_single_placement("S1")
        placed = manager.place_at_cursor(DataPoint(T0 + 2_400.0, 4.2))
        assert placed == NamedPoint("S1", T0 + 2_000.0, 5.0)
        assert job.named_points["S1"] == placed
