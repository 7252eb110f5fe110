"""트라이/캐치 블록에서 사용할 예외 타입 정의 모듈.

광범위한 Exception 사용을 지양하고, 의도한 예외만 명시적으로 처리하기 위해 사용합니다.
"""

import asyncio
from enum import StrEnum
from typing import Final, TypeAlias

import aiohttp
import orjson


class ErrorDomain(StrEnum):
    """에러 도메인 분류"""

    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    API = "api"
    CONFIG = "config"
    SCHEDULER = "scheduler"
    UNKNOWN = "unknown"


class ErrorCode(StrEnum):
    """에러 코드 분류"""

    CONNECT_FAILED = "connect_failed"
    TIMEOUT = "timeout"
    INVALID_BODY = "invalid_body"
    MISSING_ENVELOPE = "missing_envelope"
    API_ERROR = "api_error"
    RETRY_EXHAUSTED = "retry_exhausted"
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_PARAMETER_FILE = "invalid_parameter_file"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"


# ----------------------------------------------------------------------------
# Exception Constants
# ----------------------------------------------------------------------------

# 1. 네트워크/전송 관련 예외 (재시도 대상)
# - aiohttp.ClientError: 연결 실패, 응답 중단 등
# - asyncio.TimeoutError: 요청 시간 초과
# - OSError: 소켓/DNS 레벨 에러
TRANSPORT_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)

# 2. 응답 본문 해석 실패 (재시도 대상)
DECODE_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (
    orjson.JSONDecodeError,
    UnicodeDecodeError,
)


ErrorCategory: TypeAlias = tuple[ErrorDomain, ErrorCode, bool]
ExceptionGroup: TypeAlias = type[BaseException] | tuple[type[BaseException], ...]
