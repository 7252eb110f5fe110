from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias


class AggregatorKind(StrEnum):
    """집계 함수 종류"""

    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    FILTERED_COUNT = "filtered_count"


@dataclass(slots=True, frozen=True, repr=False, match_args=False, kw_only=True)
class FieldExtractor:
    """엔티티의 최상위 키를 그대로 읽는 추출기."""

    field: str


@dataclass(slots=True, frozen=True, repr=False, match_args=False, kw_only=True)
class CapacityExtractor:
    """zone 레코드의 `capacity` 목록에서 type이 일치하는 항목의 필드를 읽는 추출기."""

    capacity_type: int
    field: str


Extractor: TypeAlias = FieldExtractor | CapacityExtractor


@dataclass(slots=True, frozen=True, repr=False, match_args=False, kw_only=True)
class Aggregator:
    """집계 함수 (FILTERED_COUNT일 때만 match_value 사용)."""

    kind: AggregatorKind
    match_value: Any = None


@dataclass(slots=True, frozen=True, repr=False, match_args=False, kw_only=True)
class MetricRule:
    """메트릭 하나의 규칙: 추출기 + 집계 함수 + 기본값."""

    extractor: Extractor
    aggregator: Aggregator
    default: float = 0


@dataclass(slots=True, frozen=True, eq=False, repr=False, match_args=False, kw_only=True)
class MetricDefinition:
    """메트릭 계열 정의 (요청 템플릿 + 그룹핑 + 규칙).

    - 프로세스 시작 시 한 번 정의되고 이후 변경되지 않습니다.
    - advanced_* 중 하나라도 지정되면 세분화 집계를 한 번 더 수행하며,
      지정되지 않은 쪽은 standard 값을 사용합니다.
    """

    request: Mapping[str, str]
    standard_grouping: tuple[str, ...]
    standard_metrics: Mapping[str, MetricRule]
    advanced_grouping: tuple[str, ...] | None = None
    advanced_metrics: Mapping[str, MetricRule] | None = None

    @property
    def command(self) -> str:
        return self.request["command"]

    @property
    def has_advanced(self) -> bool:
        return self.advanced_grouping is not None or self.advanced_metrics is not None

    def advanced_pass(self) -> tuple[tuple[str, ...], Mapping[str, MetricRule]]:
        """세분화 집계에 사용할 (grouping, metrics)."""
        return (
            self.advanced_grouping if self.advanced_grouping is not None else self.standard_grouping,
            self.advanced_metrics if self.advanced_metrics is not None else self.standard_metrics,
        )


@dataclass(slots=True, frozen=True, repr=False, match_args=False, kw_only=True)
class MetricSample:
    """출력 한 줄에 해당하는 메트릭 샘플 (emit 후 보관하지 않음)."""

    timestamp: int
    metric_id: str
    value: float | int
    source: str


# group -> metric_id -> value (group 정렬 순서 유지)
AggregationResult: TypeAlias = dict[str, dict[str, float | int]]
