from __future__ import annotations

import asyncio

from src.common.exceptions.base import CollectorError
from src.core.dto.internal.common import RuleDomain
from src.core.types import (
    DECODE_EXCEPTIONS,
    TRANSPORT_EXCEPTIONS,
    ErrorCategory,
    ErrorCode,
    ErrorDomain,
)

# 1) asyncio 규칙 (취소는 재시도하지 않음, 타임아웃은 전송 실패)
RULES_ASYNCIO: list[RuleDomain] = [
    RuleDomain(
        exc=asyncio.CancelledError,
        result=(ErrorDomain.SCHEDULER, ErrorCode.CANCELLED, False),
    ),
    RuleDomain(
        exc=asyncio.TimeoutError,
        result=(ErrorDomain.TRANSPORT, ErrorCode.TIMEOUT, True),
    ),
]

# 2) 본문 해석 규칙
RULES_DECODE: list[RuleDomain] = [
    RuleDomain(
        exc=DECODE_EXCEPTIONS,
        result=(ErrorDomain.PROTOCOL, ErrorCode.INVALID_BODY, True),
    ),
]

# 3) 전송 규칙 (aiohttp/소켓)
RULES_TRANSPORT: list[RuleDomain] = [
    RuleDomain(
        exc=TRANSPORT_EXCEPTIONS,
        result=(ErrorDomain.TRANSPORT, ErrorCode.CONNECT_FAILED, True),
    ),
]

# 4) 전체 규칙 (구체 -> 포괄 순서를 유지하며 결합)
# 주의: 매칭 우선순위를 보장하기 위해 선언 순서를 유지합니다.
RULES_FOR_HTTP: list[RuleDomain] = [
    *RULES_ASYNCIO,
    *RULES_DECODE,
    *RULES_TRANSPORT,
]


def classify_exception(err: BaseException) -> ErrorCategory:
    """예외 → (ErrorDomain, ErrorCode, retryable) 분류기 (규칙 테이블 기반)

    - CollectorError 계열은 자신이 가진 구조화 필드를 그대로 사용합니다.
    - 그 외에는 선언적 규칙을 순서대로 평가합니다.
    """
    if isinstance(err, CollectorError):
        return (err.error_domain, err.error_code, err.retryable)

    for rule in RULES_FOR_HTTP:
        if isinstance(err, rule.exc):
            return rule.result

    # 알 수 없는 경우 기본값
    return (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)


def is_retryable(err: BaseException) -> bool:
    """재시도 대상 여부"""
    return classify_exception(err)[2]
