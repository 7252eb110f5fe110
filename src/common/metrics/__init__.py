"""메트릭 정의/집계/출력.

공개 API:
- DEFINITIONS: 메트릭 정의 레지스트리
- aggregate: 엔티티 → 그룹별 메트릭 값
- MetricEmitter: 메트릭 라인 출력기
"""

from src.common.metrics.aggregation import aggregate
from src.common.metrics.definitions import DEFINITIONS
from src.common.metrics.emitter import MetricEmitter

__all__ = [
    "DEFINITIONS",
    "aggregate",
    "MetricEmitter",
]
