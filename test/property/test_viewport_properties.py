"""
Property-based tests for ViewportModel invariants.

Properties verified:
1. Window bounds: after any sequence of pan/zoom/navigate the visible window
   stays inside the full range and is never shorter than the floor
2. Zoom round trip: zoom(f, c) then zoom(1/f, c) restores the duration
   when no clamping occurred
"""
from __future__ import annotations

import pytest
from hypothesis import assume, given, settings, strategies as st

from core.viewport import ViewportModel
from shared.models import TimeWindow

span_strategy = st.floats(min_value=120_000.0, max_value=30 * 86_400_000.0)
fraction = st.floats(min_value=0.0, max_value=1.0)

operation = st.one_of(
    st.tuples(st.just("pan"), st.floats(min_value=-1e9, max_value=1e9)),
    st.tuples(st.just("zoom"), st.floats(min_value=0.05, max_value=20.0)),
    st.tuples(st.just("navigate"), fraction),
    st.tuples(st.just("range"), st.floats(min_value=1.0, max_value=1e10)),
)


class TestViewportProperties:
    @given(span=span_strategy, ops=st.lists(operation, min_size=1, max_size=30))
    @settings(max_examples=200, deadline=None)
    def test_window_always_inside_full_range(self, span, ops):
        window = TimeWindow(1_000.0, 1_000.0 + span)
        model = ViewportModel(window)
        for name, arg in ops:
            if name == "pan":
                model.pan(arg)
            elif name == "zoom":
                model.zoom(arg, model.midpoint)
            elif name == "navigate":
                model.navigate_to(window.full_min + arg * span)
            else:
                model.set_range(arg)
            start, end = model.visible_range()
            tol = 1e-6 * span
            assert window.full_min - tol <= start <= end <= window.full_max + tol
            assert end - start >= 60_000.0 - tol

    @given(
        factor=st.floats(min_value=1.01, max_value=4.0),
        duration_frac=st.floats(min_value=0.3, max_value=0.6),
        center_frac=fraction,
    )
    @settings(max_examples=200, deadline=None)
    def test_zoom_round_trip(self, factor, duration_frac, center_frac):
        window = TimeWindow(0.0, 100 * 3_600_000.0)
        model = ViewportModel(window)
        model.set_range(window.span * duration_frac)
        start, end = model.visible_range()
        center = start + center_frac * (end - start)
        original = model.duration
        assume(original / factor >= model.floor_ms)
        assert model.zoom(factor, center)
        model.zoom(1.0 / factor, center)
        assert model.duration == pytest.approx(original, rel=1e-9)
