"""엔티티 집계 엔진.

한 주기 동안 수집한 엔티티 목록을 그룹별 숫자 메트릭으로 축약합니다.
- 그룹 키 계산 (그룹핑 필드 값을 '.'로 결합, 공백은 '-')
- 규칙별 값 추출 (필드 직접 조회 / capacity 하위 레코드 조회)
- 집계 함수 적용 (sum, avg, min, max, count, filtered_count)

모든 함수는 입력을 변경하지 않는 순수 함수입니다.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final

from src.core.dto.internal.metrics import (
    AggregationResult,
    Aggregator,
    AggregatorKind,
    CapacityExtractor,
    Extractor,
    FieldExtractor,
    MetricRule,
)

WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")
NUMBER_RUN: Final[re.Pattern[str]] = re.compile(r"[\d.]+")


def coerce_number(value: Any) -> float | int:
    """원시 값을 숫자로 변환합니다.

    숫자가 아니면 문자열 표현에서 처음 나타나는 숫자/소수점 연속 구간을 사용하고,
    그마저 해석할 수 없으면 0을 반환합니다. (예: "2048 MB" -> 2048)
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value

    match = NUMBER_RUN.search(str(value))
    if match is None:
        return 0

    try:
        number = float(match.group(0))
    except ValueError:
        # "1.2.3", "." 등
        return 0
    return int(number) if number.is_integer() else number


def extract(entity: Mapping[str, Any], extractor: Extractor) -> Any:
    """추출기로 엔티티에서 원시 값을 읽습니다. 값이 없으면 None."""
    if isinstance(extractor, FieldExtractor):
        return entity.get(extractor.field)

    if isinstance(extractor, CapacityExtractor):
        for subset in entity.get("capacity") or ():
            if isinstance(subset, Mapping) and subset.get("type") == extractor.capacity_type:
                return subset.get(extractor.field)
        return None

    raise TypeError(f"unsupported extractor: {extractor!r}")


def extract_value(entity: Mapping[str, Any], rule: MetricRule) -> Any:
    """규칙 값 추출. 없거나 null이면 규칙 기본값으로 대체합니다 (레코드는 버리지 않음)."""
    raw = extract(entity, rule.extractor)
    return rule.default if raw is None else raw


def group_key(entity: Mapping[str, Any], grouping: Sequence[str]) -> str:
    """그룹핑 필드 값으로 그룹 키 생성.

    값이 없는 필드는 건너뛰며, 그룹핑이 비어 있으면 빈 문자열(암묵적 단일 그룹)입니다.
    """
    parts: list[str] = []
    for label in grouping:
        value = entity.get(label)
        if value is None or value is False:
            continue
        parts.append(str(value))
    return WHITESPACE.sub("-", ".".join(parts))


def apply_aggregator(bucket: Sequence[Any], aggregator: Aggregator) -> float | int:
    """버킷에 집계 함수 적용. 빈 버킷은 모든 집계에서 0입니다."""
    if not bucket:
        return 0

    kind = aggregator.kind

    # count 계열은 변환 전 원시 값 기준
    if kind is AggregatorKind.COUNT:
        return len(bucket)
    if kind is AggregatorKind.FILTERED_COUNT:
        return sum(1 for value in bucket if value == aggregator.match_value)

    numbers = [coerce_number(value) for value in bucket]
    if kind is AggregatorKind.SUM:
        return sum(numbers)
    if kind is AggregatorKind.AVG:
        return sum(numbers) / len(numbers)
    if kind is AggregatorKind.MIN:
        return min(numbers)
    if kind is AggregatorKind.MAX:
        return max(numbers)

    raise ValueError(f"unsupported aggregator: {kind}")


def aggregate(
    entities: Iterable[Any],
    grouping: Sequence[str],
    metrics: Mapping[str, MetricRule],
) -> AggregationResult:
    """엔티티 목록을 그룹별 메트릭 값으로 축약합니다.

    Args:
        entities: API가 반환한 엔티티(JSON object) 목록
        grouping: 그룹핑 필드 이름 (순서 유지)
        metrics: metric_id -> MetricRule

    Returns:
        group -> metric_id -> value. group은 사전순으로 정렬되어 있고
        metric_id는 규칙 선언 순서를 따릅니다.
    """
    buckets: dict[str, dict[str, list[Any]]] = {}

    # 그룹핑이 없으면 엔티티가 0개여도 암묵적 단일 그룹을 보고
    if not grouping:
        buckets[""] = {metric_id: [] for metric_id in metrics}

    for entity in entities:
        record: Mapping[str, Any] = entity if isinstance(entity, Mapping) else {}
        group = group_key(record, grouping)
        group_buckets = buckets.setdefault(group, {metric_id: [] for metric_id in metrics})
        for metric_id, rule in metrics.items():
            group_buckets[metric_id].append(extract_value(record, rule))

    return {
        group: {
            metric_id: apply_aggregator(buckets[group][metric_id], rule.aggregator)
            for metric_id, rule in metrics.items()
        }
        for group in sorted(buckets)
    }
