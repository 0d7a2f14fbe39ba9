"""
Unit tests for ViewportModel clamping, pan/zoom and projection.
"""
from __future__ import annotations

import pytest

from core.geometry import Padding
from core.viewport import ALL, ViewportModel, ViewportState
from shared.models import TimeWindow

TEN_MIN = TimeWindow(0.0, 600_000.0)


@pytest.fixture
def viewport() -> ViewportModel:
    return ViewportModel(TEN_MIN)


class TestRangeAndPan:
    def test_starts_in_all_mode(self, viewport):
        assert viewport.state.is_all
        assert viewport.visible_range() == (0.0, 600_000.0)

    def test_pan_past_end_is_clamped(self, viewport):
        viewport.set_range(60_000)
        viewport.pan(500_000)
        start, end = viewport.visible_range()
        assert end == 600_000.0
        assert start == 540_000.0

    def test_set_range_keeps_midpoint(self, viewport):
        viewport.set_range(60_000)
        assert viewport.midpoint == pytest.approx(300_000.0)
        assert viewport.duration == 60_000.0

    def test_pan_before_start_is_clamped(self, viewport):
        viewport.set_range(120_000)
        viewport.pan(-10_000_000)
        assert viewport.visible_range() == (0.0, 120_000.0)
        assert viewport.is_at_start

    def test_pan_is_noop_in_all_mode(self, viewport):
        viewport.pan(50_000)
        assert viewport.state == ViewportState(None, ALL)

    def test_navigate_to_is_noop_in_all_mode(self, viewport):
        viewport.navigate_to(100_000)
        assert viewport.state.is_all

    def test_range_longer_than_span_is_clamped(self, viewport):
        viewport.set_range(10 * 600_000)
        assert viewport.duration == 600_000.0
        assert viewport.visible_range() == (0.0, 600_000.0)

    def test_range_below_floor_is_raised(self, viewport):
        viewport.set_range(1_000)
        assert viewport.duration == 60_000.0

    def test_floor_is_span_for_short_logs(self):
        model = ViewportModel(TimeWindow(0.0, 30_000.0))
        model.set_range(5_000)
        assert model.floor_ms == 30_000.0
        assert model.duration == 30_000.0

    def test_page_pan_moves_quarter_range(self, viewport):
        viewport.set_range(120_000)
        before = viewport.end
        viewport.pan_page(-1)
        assert viewport.end == pytest.approx(before - 30_000.0)

    def test_fine_pan_moves_one_step(self, viewport):
        viewport.set_range(120_000)
        before = viewport.end
        viewport.pan_fine(-1, 60_000)
        assert viewport.end == pytest.approx(before - 60_000.0)

    def test_restore_reclamps_stored_state(self):
        model = ViewportModel(TEN_MIN, ViewportState(view_end=9_999_999.0, range_spec=120_000.0))
        assert model.visible_range() == (480_000.0, 600_000.0)


class TestZoom:
    def test_zoom_in_from_all_switches_to_numeric_range(self, viewport):
        assert viewport.zoom(2.0)
        assert not viewport.state.is_all
        assert viewport.duration == pytest.approx(300_000.0)

    def test_zoom_keeps_center_fixed(self, viewport):
        viewport.set_range(300_000)
        center = 200_000.0
        assert viewport.zoom(1.5, center)
        start, end = viewport.visible_range()
        assert (center - start) / (end - start) == pytest.approx(
            (center - 150_000.0) / 300_000.0, abs=1e-9
        )

    def test_zoom_at_floor_is_noop(self, viewport):
        viewport.set_range(60_000)
        state = viewport.state
        assert not viewport.zoom(1.1)
        assert viewport.state == state

    def test_zoom_out_at_full_span_is_noop(self, viewport):
        assert not viewport.zoom(0.9)
        assert viewport.state.is_all

    def test_nonpositive_factor_rejected(self, viewport):
        assert not viewport.zoom(0.0)
        assert not viewport.zoom(-2.0)


class TestProjection:
    def test_time_pixel_round_trip(self, viewport):
        padding = Padding(top=0, right=0, bottom=0, left=0)
        assert viewport.map_time_to_pixel(300_000.0, 600, padding) == pytest.approx(300.0)
        assert viewport.map_pixel_to_time(150.0, 600, padding) == pytest.approx(150_000.0)

    def test_value_axis_is_inverted(self, viewport):
        padding = Padding(top=0, right=0, bottom=0, left=0)
        assert viewport.map_value_to_pixel(10.0, 100, (0.0, 10.0), padding) == pytest.approx(0.0)
        assert viewport.map_value_to_pixel(0.0, 100, (0.0, 10.0), padding) == pytest.approx(100.0)
        assert viewport.map_pixel_to_value(25.0, 100, (0.0, 10.0), padding) == pytest.approx(7.5)

    def test_window_label(self, viewport):
        assert viewport.window_label() == "전체 기간"
        viewport.set_range(60_000)
        assert "~" in viewport.window_label()
