from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.core.types import ErrorCode, ErrorDomain


@dataclass(eq=False)
class CollectorError(Exception):
    """수집기 관련 기본 예외 클래스

    운영/관측/정책 판단을 위한 구조화 필드를 포함하며, `to_dict()`는
    이벤트/로그 직렬화 시 일관된 스키마를 제공합니다.
    """

    message: str
    original_exception: Exception | None = None

    # 구조화 필드 (운영/관측/정책 판단용)
    error_domain: ErrorDomain = ErrorDomain.UNKNOWN
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    retryable: bool = False

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """예외 정보를 이벤트 데이터로 변환"""
        result: dict[str, Any] = {
            "error": self.message,
            "error_type": self.__class__.__name__,
            "error_domain": self.error_domain.value,
            "error_code": self.error_code.value,
            "retryable": self.retryable,
        }

        if self.original_exception:
            result["original_error"] = str(self.original_exception)
            result["original_error_type"] = self.original_exception.__class__.__name__

        return result


@dataclass(eq=False)
class TransportError(CollectorError):
    """연결/DNS/타임아웃 실패"""

    error_domain: ErrorDomain = ErrorDomain.TRANSPORT
    error_code: ErrorCode = ErrorCode.CONNECT_FAILED
    retryable: bool = True


@dataclass(eq=False)
class ProtocolError(CollectorError):
    """JSON이 아니거나 응답 봉투(envelope)가 없는 본문"""

    error_domain: ErrorDomain = ErrorDomain.PROTOCOL
    error_code: ErrorCode = ErrorCode.INVALID_BODY
    retryable: bool = True


@dataclass(eq=False)
class APIError(CollectorError):
    """서버가 보고한 errorcode/errortext"""

    error_domain: ErrorDomain = ErrorDomain.API
    error_code: ErrorCode = ErrorCode.API_ERROR
    retryable: bool = True
    api_error_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result = CollectorError.to_dict(self)
        if self.api_error_code is not None:
            result["api_error_code"] = self.api_error_code
        return result


@dataclass(eq=False)
class RetryExhaustedError(CollectorError):
    """재시도 횟수를 모두 소진한 호출 (해당 파이프라인의 이번 주기를 중단)"""

    error_code: ErrorCode = ErrorCode.RETRY_EXHAUSTED
    command: str = ""
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        result = CollectorError.to_dict(self)
        result["command"] = self.command
        result["attempts"] = self.attempts
        return result


@dataclass(eq=False)
class ConfigError(CollectorError):
    """시작 시점 설정 오류 (재시도하지 않음)"""

    error_domain: ErrorDomain = ErrorDomain.CONFIG
    error_code: ErrorCode = ErrorCode.MISSING_CREDENTIAL
