"""Results table rows built from a GraphJob.

Row order: the ST -> EN response row first (when both points exist and the
job does not exclude it), then named points and the selected channel's manual
range results merged by start time.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from analysis.metrics import response_time_seconds
from shared.models import from_epoch_ms
from .job import GraphJob


class RowKind(Enum):
    RESPONSE = "응답"
    POINT = "지정 포인트"
    MANUAL = "수동 분석"


@dataclass(frozen=True)
class ResultRow:
    kind: RowKind
    label: str
    start_time: float
    end_time: Optional[float] = None
    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    diff: Optional[float] = None
    response_seconds: Optional[int] = None
    result_id: Optional[str] = None
    channel_id: Optional[str] = None

    @property
    def deletable(self) -> bool:
        return self.kind is RowKind.MANUAL or self.kind is RowKind.POINT

    def time_text(self) -> str:
        fmt = "%H:%M:%S"
        start = from_epoch_ms(self.start_time).strftime(fmt)
        if self.end_time is None:
            return start
        return f"{start} ~ {from_epoch_ms(self.end_time).strftime(fmt)}"

    def value_text(self) -> str:
        if self.kind is RowKind.RESPONSE:
            return f"{self.response_seconds} 초"
        if self.kind is RowKind.MANUAL:
            return f"최소 {self.min:.3f} / 최대 {self.max:.3f} / 차이 {self.diff:.3f}"
        return f"{self.value:.3f}"


def response_row(job: GraphJob) -> Optional[ResultRow]:
    if job.exclude_response_time:
        return None
    st = job.named_points.get("ST")
    en = job.named_points.get("EN")
    if st is None or en is None:
        return None
    return ResultRow(
        kind=RowKind.RESPONSE,
        label="ST → EN",
        start_time=st.timestamp,
        end_time=en.timestamp,
        response_seconds=response_time_seconds(st.timestamp, en.timestamp),
    )


def build_results(job: GraphJob) -> List[ResultRow]:
    rows: List[ResultRow] = []
    head = response_row(job)
    if head is not None:
        rows.append(head)

    body: List[ResultRow] = [
        ResultRow(kind=RowKind.POINT, label=p.label, start_time=p.timestamp, value=p.value)
        for p in job.named_points.values()
    ]
    channel_id = job.selected_channel_id
    state = job.channel_analysis.get(channel_id) if channel_id is not None else None
    if state is not None:
        for n, result in enumerate(state.results, start=1):
            body.append(
                ResultRow(
                    kind=RowKind.MANUAL,
                    label=f"구간 {n}",
                    start_time=result.start_time,
                    end_time=result.end_time,
                    min=result.min,
                    max=result.max,
                    diff=result.diff,
                    result_id=result.id,
                    channel_id=channel_id,
                )
            )
    body.sort(key=lambda row: row.start_time)
    rows.extend(body)
    return rows


__all__ = ["ResultRow", "RowKind", "build_results", "response_row"]
