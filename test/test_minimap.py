"""
Unit tests for MiniMapNavigator hit testing/drags and peak decimation.
"""
from __future__ import annotations

import numpy as np
import pytest

from core.minimap import DragMode, MiniMapNavigator, peak_decimate
from core.viewport import ViewportModel
from shared.models import TimeWindow

WINDOW = TimeWindow(0.0, 1_000_000.0)


@pytest.fixture
def navigator() -> MiniMapNavigator:
    viewport = ViewportModel(WINDOW)
    viewport.set_window(200_000.0, 600_000.0)
    return MiniMapNavigator(viewport, width=1000.0)


class TestHitTest:
    def test_selection_span_in_pixels(self, navigator):
        assert navigator.selection_span() == pytest.approx((400.0, 600.0))

    @pytest.mark.parametrize(
        "x, expected",
        [
            (500.0, DragMode.MOVE),
            (412.0, DragMode.MOVE),
            (405.0, DragMode.LEFT),
            (395.0, DragMode.LEFT),
            (595.0, DragMode.RIGHT),
            (610.0, DragMode.RIGHT),
            (100.0, DragMode.NONE),
            (900.0, DragMode.NONE),
        ],
    )
    def test_classification(self, navigator, x, expected):
        assert navigator.hit_test(x) is expected

    def test_handle_shrinks_for_narrow_window(self):
        viewport = ViewportModel(WINDOW)
        viewport.set_window(60_000.0, 600_000.0)
        nav = MiniMapNavigator(viewport, width=1000.0)
        left, right = nav.selection_span()
        assert right - left == pytest.approx(60.0)
        # handle is 20% of 60 px = 12 px; the middle still moves
        assert nav.hit_test(left + 30.0) is DragMode.MOVE


class TestDrags:
    def test_press_outside_navigates(self, navigator):
        assert navigator.press(900.0) is DragMode.NONE
        assert navigator.viewport.end == pytest.approx(900_000.0)
        assert navigator.drag_mode is DragMode.NONE

    def test_move_drag_shifts_window(self, navigator):
        navigator.press(500.0)
        navigator.move(550.0)
        navigator.release()
        assert navigator.viewport.visible_range() == pytest.approx((450_000.0, 650_000.0))

    def test_move_drag_clamps_at_end(self, navigator):
        navigator.press(500.0)
        navigator.move(2000.0)
        assert navigator.viewport.end == pytest.approx(1_000_000.0)
        assert navigator.viewport.duration == pytest.approx(200_000.0)

    def test_left_resize_keeps_end(self, navigator):
        navigator.press(400.0)
        assert navigator.drag_mode is DragMode.LEFT
        navigator.move(300.0)
        assert navigator.viewport.visible_range() == pytest.approx((300_000.0, 600_000.0))

    def test_left_resize_respects_floor(self, navigator):
        navigator.press(400.0)
        navigator.move(599.0)
        assert navigator.viewport.duration == pytest.approx(60_000.0)
        assert navigator.viewport.end == pytest.approx(600_000.0)

    def test_right_resize_keeps_start(self, navigator):
        navigator.press(600.0)
        assert navigator.drag_mode is DragMode.RIGHT
        navigator.move(700.0)
        assert navigator.viewport.visible_range() == pytest.approx((400_000.0, 700_000.0))

    def test_right_resize_clamps_to_full_max(self, navigator):
        navigator.press(600.0)
        navigator.move(5000.0)
        assert navigator.viewport.visible_range() == pytest.approx((400_000.0, 1_000_000.0))

    def test_move_without_press_is_ignored(self, navigator):
        before = navigator.viewport.state
        navigator.move(700.0)
        assert navigator.viewport.state == before


class TestPeakDecimate:
    def test_small_input_is_unchanged(self):
        t = np.arange(10, dtype=np.float64)
        y = np.arange(10, dtype=np.float64)
        out_t, out_y = peak_decimate(t, y, 100)
        assert out_t is t
        assert out_y is y

    def test_preserves_extremes_and_tail(self):
        t = np.arange(10_001, dtype=np.float64)
        y = np.sin(t / 50.0)
        y[1234] = 5.0
        y[7777] = -5.0
        out_t, out_y = peak_decimate(t, y, 1000)
        assert out_y.size <= 1001
        assert out_y.max() == 5.0
        assert out_y.min() == -5.0
        assert out_t[-1] == t[-1]
