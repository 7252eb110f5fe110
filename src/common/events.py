"""수집 실패 이벤트와 프로세스 내부 Event Bus.

스케줄러는 정의 하나의 파이프라인이 실패하면 ErrorEvent를 발행하고,
Application이 등록한 핸들러가 이를 구조화 로그로 남깁니다.
스케줄러가 로깅/종료 정책을 직접 알 필요가 없도록 분리합니다.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.common.logger import PipelineLogger

Handler = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """폴링 파이프라인 실패.

    exc는 보통 RetryExhaustedError이며, target은 실패한 API command
    (예: listZones), context에는 해당 주기 시각(timestamp)이 들어갑니다.
    """

    exc: Exception
    kind: str  # "poll_pipeline"
    target: str
    context: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)


class EventBus:
    """이벤트 타입별 async 핸들러 목록 (클래스 수준 레지스트리)"""

    _handlers: dict[type, list[Handler]] = {}

    @classmethod
    async def emit(cls, event: Any) -> None:
        """등록 순서대로 핸들러를 await 합니다.

        핸들러 실패는 로그만 남기고 발행자(스케줄러)에게 전파하지 않습니다.
        """
        event_type = type(event)
        for handler in cls._handlers.get(event_type, []):
            try:
                await handler(event)
            except Exception as e:
                logger = PipelineLogger.get_logger("event_bus", "common")
                logger.error(
                    f"{event_type.__name__} handler failed: {e}",
                    exc_info=True,
                    handler=getattr(handler, "__name__", repr(handler)),
                    target=getattr(event, "target", None),
                )

    @classmethod
    def on(cls, event_type: type, handler: Handler) -> None:
        cls._handlers.setdefault(event_type, []).append(handler)

    @classmethod
    def clear(cls) -> None:
        """등록된 핸들러 제거 (테스트 격리용)"""
        cls._handlers.clear()


__all__ = ["ErrorEvent", "EventBus", "Handler"]
