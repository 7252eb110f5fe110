"""수집 주기 스케줄러.

한 주기:
    1. 주기 시작 시각을 한 번만 기록
    2. 정의마다 파이프라인(페이지 수집 → 집계 → 출력) 태스크를 동시에 시작
    3. 모든 태스크가 끝날 때까지 대기 (join)
    4. 종료 시점부터 poll_interval만큼 대기 후 다음 주기 (fixed-delay)

재시도 소진 정책:
    - 기본: 실패한 정의만 이번 주기 출력을 건너뛰고 나머지는 정상 출력
    - fatal_on_retry_exhausted=True: 예외를 다시 던져 프로세스를 종료
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Sequence

from src.common.events import ErrorEvent, EventBus
from src.common.exceptions.base import CollectorError
from src.common.logger import PipelineLogger
from src.common.metrics.aggregation import aggregate
from src.common.metrics.definitions import DEFINITIONS
from src.common.metrics.emitter import MetricEmitter
from src.core.dto.internal.metrics import MetricDefinition
from src.core.dto.internal.orchestrator import CycleReportDomain, PipelineOutcomeDomain
from src.infra.cloudstack.paginator import Paginator

logger = PipelineLogger.get_logger("scheduler", "app")


class PollScheduler:
    """정의별 파이프라인을 fan-out/join 하며 주기를 반복합니다."""

    def __init__(
        self,
        paginator: Paginator,
        emitter: MetricEmitter,
        poll_interval: float,
        advanced_metrics: bool = False,
        fatal_on_retry_exhausted: bool = False,
        definitions: Sequence[MetricDefinition] = DEFINITIONS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            paginator: 페이지 수집기
            emitter: 메트릭 라인 출력기
            poll_interval: 주기 사이 대기 시간(초)
            advanced_metrics: 세분화 집계 활성화
            fatal_on_retry_exhausted: 재시도 소진 시 프로세스 종료 여부
            definitions: 메트릭 정의 레지스트리
            clock: 주기 시각 공급자 (초)
        """
        self._paginator = paginator
        self._emitter = emitter
        self._poll_interval = poll_interval
        self._advanced_metrics = advanced_metrics
        self._fatal = fatal_on_retry_exhausted
        self._definitions = tuple(definitions)
        self._clock = clock
        self._stop_event = asyncio.Event()

    async def run_pipeline(self, definition: MetricDefinition, timestamp: int) -> PipelineOutcomeDomain:
        """정의 하나: 전체 페이지 수집 후 standard (+advanced) 집계 결과를 출력합니다."""
        entities = await self._paginator.fetch_all(definition.request)

        result = aggregate(entities, definition.standard_grouping, definition.standard_metrics)
        samples = self._emitter.emit_result(timestamp, result)

        if self._advanced_metrics and definition.has_advanced:
            grouping, metrics = definition.advanced_pass()
            samples += self._emitter.emit_result(timestamp, aggregate(entities, grouping, metrics))

        return PipelineOutcomeDomain(
            command=definition.command,
            succeeded=True,
            samples=samples,
            entities=len(entities),
        )

    async def _guarded_pipeline(self, definition: MetricDefinition, timestamp: int) -> PipelineOutcomeDomain:
        try:
            return await self.run_pipeline(definition, timestamp)
        except CollectorError as e:
            # 로그는 ErrorEvent 핸들러가 남깁니다
            await EventBus.emit(
                ErrorEvent(
                    exc=e,
                    kind="poll_pipeline",
                    target=definition.command,
                    context={"timestamp": timestamp},
                )
            )
            if self._fatal:
                raise
            return PipelineOutcomeDomain(command=definition.command, succeeded=False, error=str(e))

    async def run_cycle(self) -> CycleReportDomain:
        """한 주기 실행. 모든 정의의 파이프라인이 끝나야 반환합니다."""
        timestamp = int(self._clock())
        logger.debug(f"poll cycle started: {len(self._definitions)} definitions", timestamp=timestamp)
        tasks = [
            asyncio.create_task(
                self._guarded_pipeline(definition, timestamp),
                name=f"poll-{definition.command}",
            )
            for definition in self._definitions
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException:
            # fatal 정책: 나머지 파이프라인을 취소한 뒤 예외 전파 (세션 종료 전 정리)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        report = CycleReportDomain(timestamp=timestamp, outcomes=list(outcomes))
        logger.info(
            f"poll cycle finished: {report.samples} samples, {len(report.failed)} failed",
            timestamp=timestamp,
            samples=report.samples,
            failed=report.failed,
        )
        return report

    async def run_forever(self, max_cycles: int | None = None) -> None:
        """stop() 호출 또는 max_cycles 도달 전까지 주기를 반복합니다."""
        cycles = 0
        self._stop_event.clear()

        while not self._stop_event.is_set():
            await self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            # 주기 종료 시점부터 대기 (fixed-delay)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)

    def stop(self) -> None:
        self._stop_event.set()
