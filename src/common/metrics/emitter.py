"""메트릭 라인 출력기.

호스트 에이전트 프로토콜: `<metricId> <value> <source> <unixTimestampSeconds>`
한 샘플당 한 줄을 표준 출력에 씁니다 (배치 없음).
"""

from __future__ import annotations

import sys
from typing import TextIO

from src.common.metrics.aggregation import WHITESPACE
from src.core.dto.internal.metrics import AggregationResult, MetricSample


def format_value(value: float | int) -> str:
    """정수로 떨어지는 값은 소수부 없이 출력합니다."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_sample(sample: MetricSample) -> str:
    return f"{sample.metric_id} {format_value(sample.value)} {sample.source} {sample.timestamp}"


class MetricEmitter:
    """샘플을 한 줄씩 스트림에 기록합니다."""

    def __init__(self, default_source: str, stream: TextIO | None = None) -> None:
        """
        Args:
            default_source: 그룹이 없을 때 사용할 source (설정값 또는 호스트명)
            stream: 출력 스트림 (기본: sys.stdout)
        """
        self._default_source = default_source
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # 테스트에서 sys.stdout 교체를 반영하기 위해 호출 시점에 조회
        return self._stream or sys.stdout

    def resolve_source(self, group: str | None) -> str:
        if group:
            source = WHITESPACE.sub("-", group)
            if source:
                return source
        return self._default_source

    def emit(
        self, timestamp: int, metric_id: str, value: float | int, group: str | None = None
    ) -> MetricSample:
        sample = MetricSample(
            timestamp=int(timestamp),
            metric_id=metric_id,
            value=value,
            source=self.resolve_source(group),
        )
        self.stream.write(format_sample(sample) + "\n")
        self.stream.flush()
        return sample

    def emit_result(self, timestamp: int, result: AggregationResult) -> int:
        """집계 결과 전체 출력 (group 정렬 순서 유지). 출력한 샘플 수를 반환."""
        count = 0
        for group, values in result.items():
            for metric_id, value in values.items():
                self.emit(timestamp, metric_id, value, group)
                count += 1
        return count
