from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True, eq=False, repr=False, match_args=False, kw_only=True)
class PipelineOutcomeDomain:
    """정의 하나의 파이프라인(수집 → 집계 → 출력) 결과."""

    command: str
    succeeded: bool
    samples: int = 0
    entities: int = 0
    error: str | None = None


@dataclass(slots=True, eq=False, repr=False, match_args=False, kw_only=True)
class CycleReportDomain:
    """수집 주기 하나의 요약 (주기 시작 시각 기준)."""

    timestamp: int
    outcomes: list[PipelineOutcomeDomain] = field(default_factory=list)

    @property
    def samples(self) -> int:
        return sum(outcome.samples for outcome in self.outcomes)

    @property
    def failed(self) -> list[str]:
        return [outcome.command for outcome in self.outcomes if not outcome.succeeded]
