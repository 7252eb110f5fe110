"""애플리케이션 진입점 (DI Container 기반)

CloudStack 관리 API 메트릭 수집 플러그인
- 서명된 API 요청 + 재시도 + 페이지네이션
- 정의별 그룹 집계
- 표준 출력으로 메트릭 라인 전송 (호스트 에이전트가 수집)

Usage:
    python main.py                         # ./param.json + 환경변수
    python main.py --params /path/param.json
"""

import argparse
import asyncio
import contextlib
import os
import signal
import sys

from src.common.events import ErrorEvent, EventBus
from src.common.exceptions.base import CollectorError, ConfigError, RetryExhaustedError
from src.common.logger import PipelineLogger
from src.config.containers import ApplicationContainer
from src.config.settings import load_agent_settings

logger = PipelineLogger.get_logger("main", "app")


class Application:
    """애플리케이션 메인 클래스

    책임:
    - 설정 로드/검증 (자격 증명 누락 시 시작 전 실패)
    - DI Container 관리
    - Event Bus 리스너 등록
    - Scheduler 태스크 실행
    - Graceful Shutdown
    """

    def __init__(self, param_file: str) -> None:
        self.param_file = param_file
        self.container: ApplicationContainer | None = None
        self.scheduler = None
        self.task: asyncio.Task | None = None

    async def _setup_event_bus(self) -> None:
        """Event Bus 리스너 등록 (EDA 패턴)

        ErrorEvent → 구조화 로그 (파이프라인 실패 로그는 여기서만 남깁니다)
        """

        async def handle_error_event(event: ErrorEvent) -> None:
            details = event.exc.to_dict() if isinstance(event.exc, CollectorError) else {}
            details.pop("command", None)
            await logger.aerror(
                f"{event.target}: 이번 주기 메트릭 출력 건너뜀 - {event.exc}",
                kind=event.kind,
                target=event.target,
                context=event.context or {},
                **details,
            )

        EventBus.on(ErrorEvent, handle_error_event)

    async def initialize(self) -> None:
        """애플리케이션 초기화

        Flow:
        1. 설정 로드 (ConfigError는 그대로 전파)
        2. Resource 초기화 (HTTP 세션)
        3. Event Bus 리스너 등록
        4. Scheduler 가져오기
        """
        settings = load_agent_settings(self.param_file)
        logger.info(
            f"CloudStack 메트릭 수집 시작: {settings.server_host}:{settings.server_port}",
            interval_ms=settings.poll_interval,
            retry_count=settings.poll_retry_count,
            retry_delay_ms=settings.poll_retry_delay,
            advanced_metrics=settings.advanced_metrics,
            source=settings.source,
        )

        self.container = ApplicationContainer(settings=settings)
        await self.container.init_resources()
        logger.info("✅ 모든 Resource 초기화 완료")

        await self._setup_event_bus()
        self.scheduler = await self.container.scheduler()
        logger.info("✅ Scheduler 준비 완료")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Windows 등 add_signal_handler 미지원 환경
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.scheduler.stop)

    async def run(self) -> None:
        """Scheduler 태스크 실행 (메인 루프)"""
        self._install_signal_handlers()
        self.task = asyncio.create_task(self.scheduler.run_forever(), name="poll-scheduler")
        await self.task

    async def shutdown(self) -> None:
        """Graceful Shutdown

        Flow:
        1. Scheduler 중단 및 태스크 정리
        2. Resource 정리 (HTTP 세션)
        """
        logger.info("정리 작업 시작...")

        if self.scheduler:
            self.scheduler.stop()

        if self.task and not self.task.done():
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

        if self.container:
            shutdown = self.container.shutdown_resources()
            if shutdown is not None:
                await shutdown
        logger.info("✅ 프로그램 종료 완료")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CloudStack metrics collector")
    parser.add_argument(
        "--params",
        default=os.getenv("PARAM_FILE", "param.json"),
        help="plugin parameter file (default: param.json)",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """메인 실행 함수. 프로세스 종료 코드를 반환합니다."""
    args = parse_args(argv)
    app = Application(param_file=args.params)

    try:
        await app.initialize()
        await app.run()
    except ConfigError as e:
        logger.critical(f"설정 오류: {e}", **e.to_dict())
        return 2
    except RetryExhaustedError as e:
        logger.critical(f"재시도 소진으로 종료: {e}", **e.to_dict())
        return 1
    finally:
        await app.shutdown()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n프로그램이 종료되었습니다.", file=sys.stderr)
