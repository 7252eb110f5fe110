from typing import Any

import orjson

from src.common.exceptions.base import ProtocolError
from src.common.exceptions.exception_rule import classify_exception
from src.core.types import DECODE_EXCEPTIONS


def from_bytes(body: bytes | str) -> Any:
    """UTF-8 JSON bytes(orjson)를 객체로 역직렬화.

    - 해석 실패 시 ProtocolError로 감싸 재시도 정책에 위임
    """
    try:
        return orjson.loads(body)
    except DECODE_EXCEPTIONS as e:
        domain, code, retryable = classify_exception(e)
        raise ProtocolError(
            "Unable to parse response!",
            original_exception=e,
            error_domain=domain,
            error_code=code,
            retryable=retryable,
        ) from e
