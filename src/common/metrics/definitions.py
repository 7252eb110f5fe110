"""메트릭 정의 레지스트리 (정적 테이블).

계열별로 발행할 API 요청, 그룹핑 필드, 메트릭 규칙을 정의합니다.
메트릭 ID와 capacity type 코드는 호스트 에이전트와의 계약이므로 변경하지 않습니다.
"""

from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType
from typing import Any, Final

from src.core.dto.internal.metrics import (
    Aggregator,
    AggregatorKind,
    CapacityExtractor,
    FieldExtractor,
    MetricDefinition,
    MetricRule,
)


class CapacityType(IntEnum):
    """zone capacity 하위 레코드의 type 코드"""

    MEMORY = 0
    CPU = 1
    STORAGE = 2
    STORAGE_ALLOCATED = 3
    VIRTUAL_NETWORK_PUBLIC_IP = 4
    PRIVATE_IP = 5
    SECONDARY_STORAGE = 6
    VLAN = 7
    DIRECT_ATTACHED_PUBLIC_IP = 8
    LOCAL_STORAGE = 9


SUM: Final[Aggregator] = Aggregator(kind=AggregatorKind.SUM)
AVG: Final[Aggregator] = Aggregator(kind=AggregatorKind.AVG)
MIN: Final[Aggregator] = Aggregator(kind=AggregatorKind.MIN)
MAX: Final[Aggregator] = Aggregator(kind=AggregatorKind.MAX)
COUNT: Final[Aggregator] = Aggregator(kind=AggregatorKind.COUNT)


def filtered_count(value: Any) -> Aggregator:
    return Aggregator(kind=AggregatorKind.FILTERED_COUNT, match_value=value)


def field(name: str, aggregator: Aggregator, default: float = 0) -> MetricRule:
    return MetricRule(extractor=FieldExtractor(field=name), aggregator=aggregator, default=default)


def capacity(kind: CapacityType, name: str, aggregator: Aggregator = SUM) -> MetricRule:
    return MetricRule(
        extractor=CapacityExtractor(capacity_type=int(kind), field=name),
        aggregator=aggregator,
    )


def _capacity_metrics() -> dict[str, MetricRule]:
    # CLOUDSTACK_<TYPE>_TOTAL / CLOUDSTACK_<TYPE>_USED
    metrics: dict[str, MetricRule] = {}
    for kind in CapacityType:
        metrics[f"CLOUDSTACK_{kind.name}_TOTAL"] = capacity(kind, "capacitytotal")
        metrics[f"CLOUDSTACK_{kind.name}_USED"] = capacity(kind, "capacityused")
    return metrics


def _freeze(metrics: dict[str, MetricRule]) -> MappingProxyType[str, MetricRule]:
    return MappingProxyType(metrics)


DEFINITIONS: Final[tuple[MetricDefinition, ...]] = (
    # Zones
    MetricDefinition(
        request=MappingProxyType({"command": "listZones", "showcapacities": "true"}),
        standard_grouping=("name",),
        standard_metrics=_freeze(_capacity_metrics()),
    ),
    # Viewer sessions
    MetricDefinition(
        request=MappingProxyType({"command": "listSystemVms", "systemvmtype": "consoleproxy"}),
        standard_grouping=("zonename",),
        standard_metrics=_freeze(
            {"CLOUDSTACK_ACTIVE_VIEWER_SESSIONS": field("activeviewersessions", SUM)}
        ),
        advanced_grouping=("zonename", "name"),
    ),
    # Events
    MetricDefinition(
        request=MappingProxyType({"command": "listEvents", "listall": "true"}),
        standard_grouping=(),
        standard_metrics=_freeze(
            {
                "CLOUDSTACK_EVENTS_INFO": field("level", filtered_count("INFO")),
                "CLOUDSTACK_EVENTS_WARN": field("level", filtered_count("WARN")),
                "CLOUDSTACK_EVENTS_ERROR": field("level", filtered_count("ERROR")),
            }
        ),
    ),
    # Alerts
    MetricDefinition(
        request=MappingProxyType({"command": "listAlerts"}),
        standard_grouping=(),
        standard_metrics=_freeze(
            {
                "CLOUDSTACK_ALERTS": field("type", COUNT),
                "CLOUDSTACK_ALERTS_MEMORY": field("type", filtered_count(0)),
                "CLOUDSTACK_ALERTS_CPU": field("type", filtered_count(1)),
                "CLOUDSTACK_ALERTS_STORAGE": field("type", filtered_count(2)),
            }
        ),
    ),
    # Accounts
    MetricDefinition(
        request=MappingProxyType({"command": "listAccounts", "listall": "true"}),
        standard_grouping=(),
        standard_metrics=_freeze(
            {
                "CLOUDSTACK_ACCOUNTS_TOTAL": field("state", COUNT),
                "CLOUDSTACK_ACCOUNTS_ENABLED": field("state", filtered_count("enabled")),
            }
        ),
    ),
)


def metric_ids(definitions: tuple[MetricDefinition, ...] = DEFINITIONS) -> list[str]:
    """등록된 모든 메트릭 ID (선언 순서)."""
    return [metric_id for d in definitions for metric_id in d.standard_metrics]
