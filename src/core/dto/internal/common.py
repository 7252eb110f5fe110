from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from src.core.types import ErrorCategory, ExceptionGroup

# 페이지네이션 고정 크기 (CloudStack pagesize)
DEFAULT_PAGE_SIZE: Final[int] = 500


@dataclass(slots=True, frozen=True, eq=True, repr=False, match_args=False, kw_only=True)
class ApiEndpointDomain:
    """관리 API 접속 정보(내부 도메인 값 객체).

    - host/port로 `/client/api` 엔드포인트를 구성
    - api_key/secret_key는 서명에만 사용되며 로그로 남기지 않습니다
    """

    host: str
    port: int
    api_key: str
    secret_key: str

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}/client/api"


@dataclass(slots=True, repr=False, eq=False, match_args=False, kw_only=True)
class RequestPolicyDomain:
    """요청 재시도/타임아웃/페이지 정책(도메인)."""

    # 재시도
    retry_count: int = 3
    retry_delay_ms: int = 3000

    # 요청
    request_timeout: float = 30.0

    # 페이지네이션
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def retry_delay(self) -> float:
        """재시도 대기 시간(초)"""
        return self.retry_delay_ms / 1000.0


@dataclass(
    slots=True, frozen=True, eq=False, repr=False, match_args=False, kw_only=True
)
class RuleDomain:
    """예외 분류 규칙(도메인)

    exc:    매칭할 예외 타입(단일 타입 또는 타입 튜플)
    result: ErrorCategory
    """

    exc: ExceptionGroup
    result: ErrorCategory
