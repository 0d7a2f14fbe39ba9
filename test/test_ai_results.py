"""
Unit tests for AI response parsing, application and the background runner.
"""
from __future__ import annotations

import json
import threading

import numpy as np
import pytest

from core.ai_results import (
    AiAnalysisRunner,
    AiResponseError,
    PointResponse,
    apply_points,
    build_request,
    parse_ai_response,
    parse_phase_response,
    parse_point_response,
)
from core.annotation import AnnotationStateManager
from core.job import GraphJob
from shared.models import DataPoint, NamedPoint, Phase
from shared.types import SensorType
from test.fixtures.series_generators import make_parsed

ISO_A = "2024-01-01T00:00:00Z"
ISO_B = "2024-01-01T00:10:00Z"
MS_A = 1_704_067_200_000.0
MS_B = MS_A + 600_000.0


@pytest.fixture
def manager() -> AnnotationStateManager:
    values = np.round(np.linspace(0.0, 10.0, 95), 6)
    values[3] = np.nan
    job = GraphJob(sensor_type=SensorType.TU)
    job.load_data(make_parsed(values, interval_ms=1000.0, measurement_range=20.0))
    return AnnotationStateManager(job)


class TestParsing:
    def test_phase_order_is_canonical(self):
        payload = json.dumps(
            [
                {"name": "High Phase 1", "startTime": ISO_B, "endTime": ISO_B},
                {"name": "Medium Phase 1", "startTime": ISO_A, "endTime": ISO_B},
                {"name": "Low Phase 1", "startTime": ISO_A, "endTime": ISO_A},
            ]
        )
        phases = parse_phase_response(payload)
        assert [p.name for p in phases] == ["Low Phase 1", "High Phase 1", "Medium Phase 1"]
        assert phases[1] == Phase("High Phase 1", MS_B, MS_B)

    def test_fenced_json_is_accepted(self):
        payload = "```json\n[{\"name\": \"Low Phase 1\", \"startTime\": 0, \"endTime\": 10}]\n```"
        assert parse_phase_response(payload) == [Phase("Low Phase 1", 0.0, 10.0)]

    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "not json",
            "[]",
            "{\"name\": 1}",
            "[{\"name\": \"Low Phase 1\", \"startTime\": \"yesterday\", \"endTime\": 0}]",
            "[{\"name\": \"Low Phase 1\", \"startTime\": 10, \"endTime\": 0}]",
            "[{\"name\": \"Low Phase 1\"}]",
        ],
    )
    def test_malformed_phases_raise(self, payload):
        with pytest.raises(AiResponseError):
            parse_phase_response(payload)

    def test_point_response(self):
        payload = {
            "z1": {"timestamp": ISO_A, "value": 0.01},
            "s1": {"timestamp": ISO_B, "value": "9.5"},
            "responseStartPoint": {"timestamp": ISO_A, "value": 1.0},
            "responseEndPoint": None,
            "responseError": "",
        }
        response = parse_point_response(payload)
        assert response.points == {
            "Z1": NamedPoint("Z1", MS_A, 0.01),
            "S1": NamedPoint("S1", MS_B, 9.5),
        }
        assert response.response_start == DataPoint(MS_A, 1.0)
        assert response.response_end is None
        assert response.response_error is None

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"responseError": "nothing found"},
            {"z1": {"timestamp": ISO_A}},
            {"z1": {"timestamp": ISO_A, "value": "high"}},
            [1, 2],
        ],
    )
    def test_malformed_points_raise(self, payload):
        with pytest.raises(AiResponseError):
            parse_point_response(payload)

    def test_error_is_a_value_error(self):
        assert issubclass(AiResponseError, ValueError)

    def test_dispatch_on_shape(self):
        assert isinstance(parse_ai_response({"m1": {"timestamp": 5, "value": 1}}), PointResponse)
        assert isinstance(parse_ai_response([{"name": "x", "startTime": 0, "endTime": 1}]), list)


class TestBuildRequest:
    def test_stride_rounding_and_missing(self, manager):
        request = build_request(manager.job)
        # rows 0, 10, ..., 90; none of them is the missing row 3
        assert len(request.points) == 10
        assert request.points[1][1] == pytest.approx(round(10 * 10.0 / 94, 4))
        assert request.points[0][0].endswith("Z")
        assert request.measurement_range == 20.0
        assert request.channel_id == "ch1"

    def test_missing_rows_dropped(self, manager):
        request = build_request(manager.job, stride=1)
        assert len(request.points) == 94

    def test_requires_data(self):
        with pytest.raises(ValueError):
            build_request(GraphJob())


class TestApply:
    def test_apply_points_replaces_wholesale(self, manager):
        manager.place_point("Z2", DataPoint(0.0, 0.0))
        response = PointResponse(
            points={"Z1": NamedPoint("Z1", 1.0, 0.0), "BOGUS": NamedPoint("BOGUS", 2.0, 0.0)},
            response_start=DataPoint(3.0, 1.0),
            response_end=DataPoint(4.0, 9.0),
        )
        apply_points(manager, response)
        job = manager.job
        assert set(job.named_points) == {"Z1", "ST", "EN"}
        assert job.named_points["EN"] == NamedPoint("EN", 4.0, 9.0)
        assert job.ai_response_start == DataPoint(3.0, 1.0)


class TestRunner:
    def test_success_applies_phases(self, manager):
        done = threading.Event()
        runner = AiAnalysisRunner(manager, on_finished=lambda _job: done.set())
        payload = [{"name": "Low Phase 1", "startTime": 0, "endTime": 1}]
        assert runner.request(lambda request: payload)
        assert done.wait(5.0)
        runner.shutdown()
        assert manager.job.ai_phases == [Phase("Low Phase 1", 0.0, 1.0)]
        assert not manager.job.is_ai_analyzing
        assert manager.job.ai_error is None

    def test_failure_keeps_annotations(self, manager):
        manager.place_point("Z1", DataPoint(1.0, 0.0))
        done = threading.Event()
        runner = AiAnalysisRunner(manager, on_finished=lambda _job: done.set())

        def _service(request):
            raise ConnectionError("service unreachable")

        assert runner.request(_service)
        assert done.wait(5.0)
        runner.shutdown()
        assert manager.job.ai_error == "service unreachable"
        assert set(manager.job.named_points) == {"Z1"}
        assert not manager.job.is_ai_analyzing

    def test_rejects_reentrant_request(self, manager):
        gate = threading.Event()
        done = threading.Event()
        runner = AiAnalysisRunner(manager, on_finished=lambda _job: done.set())

        def _slow(request):
            gate.wait(5.0)
            return "garbage"

        assert runner.request(_slow)
        assert manager.job.is_ai_analyzing
        assert not runner.request(_slow)
        gate.set()
        assert done.wait(5.0)
        runner.shutdown()
        assert manager.job.ai_error is not None

    def test_dispatch_is_used_for_completion(self, manager):
        queued = []
        runner = AiAnalysisRunner(manager, dispatch=queued.append)
        assert runner.request(lambda request: {"z1": {"timestamp": 0, "value": 0.5}})
        runner.shutdown(wait=True)
        assert manager.job.is_ai_analyzing
        assert len(queued) == 1
        queued[0]()
        assert manager.job.named_points["Z1"] == NamedPoint("Z1", 0.0, 0.5)
        assert not manager.job.is_ai_analyzing
