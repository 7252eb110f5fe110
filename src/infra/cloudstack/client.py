"""CloudStack 관리 API 클라이언트 (재시도 포함).

- 서명된 GET 요청 1회 발행 → JSON 봉투(envelope) 해석/검증
- 전송/해석/API 오류는 모두 재시도 대상 (고정 지연)
- 재시도 소진 시 RetryExhaustedError (이번 주기의 해당 파이프라인 중단)
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping
from typing import Any, Final

import aiohttp
from yarl import URL

from src.common.exceptions.base import (
    APIError,
    CollectorError,
    ProtocolError,
    RetryExhaustedError,
    TransportError,
)
from src.common.exceptions.exception_rule import classify_exception, is_retryable
from src.common.logger import PipelineLogger
from src.common.serde import from_bytes
from src.core.dto.internal.common import RequestPolicyDomain
from src.core.types import TRANSPORT_EXCEPTIONS, ErrorCode
from src.infra.cloudstack.signer import RequestSigner

logger = PipelineLogger.get_logger("cloudstack_client", "infra")

KEEP_ALIVE_HEADERS: Final[dict[str, str]] = {"Connection": "keep-alive"}
LIST_COMMAND: Final[re.Pattern[str]] = re.compile(r"^list(\w+)s$")

Entity = dict[str, Any]


def _error_code(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def unwrap_envelope(command: str, data: Any) -> list[Entity]:
    """응답 봉투를 벗겨 엔티티 목록을 반환합니다.

    - `{command}response`가 있으면 payload로 사용 (errorcode가 있으면 APIError)
    - 없고 `errorresponse`가 있으면 APIError
    - 둘 다 없으면 ProtocolError
    - list<noun>s 명령은 payload의 <noun> → <noun>s 목록을 우선 사용

    Raises:
        APIError: 서버가 보고한 오류
        ProtocolError: 봉투가 없는 본문
    """
    command = command.lower()
    if not isinstance(data, Mapping):
        raise ProtocolError("Unable to parse response!", error_code=ErrorCode.MISSING_ENVELOPE)

    response_field = f"{command}response"
    if response_field in data:
        payload = data[response_field]
        if isinstance(payload, Mapping) and "errorcode" in payload:
            raise APIError(
                str(payload.get("errortext") or f"errorcode {payload['errorcode']}"),
                api_error_code=_error_code(payload["errorcode"]),
            )
    elif "errorresponse" in data:
        error = data["errorresponse"]
        text = error.get("errortext") if isinstance(error, Mapping) else error
        raise APIError(str(text or "errorresponse"))
    else:
        raise ProtocolError("Unable to parse response!", error_code=ErrorCode.MISSING_ENVELOPE)

    match = LIST_COMMAND.match(command)
    if match and isinstance(payload, Mapping):
        section = match.group(1)
        payload = payload.get(section) or payload.get(f"{section}s") or payload

    if isinstance(payload, list):
        return payload
    # 결과가 없는 응답 (예: {"listzonesresponse": {}})
    return []


class CloudStackClient:
    """서명 + 재시도 요청기

    Example:
        >>> async with CloudStackClient(signer, policy) as client:
        >>>     zones = await client.request({"command": "listZones"})
    """

    def __init__(
        self,
        signer: RequestSigner,
        policy: RequestPolicyDomain,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Args:
            signer: 요청 서명기
            policy: 재시도/타임아웃 정책
            session: 외부에서 관리하는 HTTP 세션 (없으면 start()에서 생성)
        """
        self._signer = signer
        self._policy = policy
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> CloudStackClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """HTTP 세션을 생성하거나 재사용합니다."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=30, keepalive_timeout=60)
            timeout = aiohttp.ClientTimeout(total=self._policy.request_timeout)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=KEEP_ALIVE_HEADERS,
            )
            self._owns_session = True

    async def close(self) -> None:
        """직접 생성한 HTTP 세션만 종료합니다."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _fetch(self, uri: str) -> bytes:
        """서명된 URI로 GET 요청 후 본문을 반환합니다."""
        await self.start()
        assert self._session is not None

        # 이미 인코딩된 쿼리를 다시 인코딩하지 않도록 encoded=True
        async with self._session.get(URL(uri, encoded=True), headers=KEEP_ALIVE_HEADERS) as response:
            body = await response.read()
            if response.status >= 400:
                logger.debug(
                    f"HTTP {response.status} from management server",
                    status=response.status,
                )
            return body

    async def _attempt(self, command: str, parameters: Mapping[str, Any]) -> list[Entity]:
        uri = self._signer.sign(parameters)
        try:
            body = await self._fetch(uri)
        except TRANSPORT_EXCEPTIONS as e:
            domain, code, retryable = classify_exception(e)
            raise TransportError(
                f"{type(e).__name__}: {e}",
                original_exception=e,
                error_domain=domain,
                error_code=code,
                retryable=retryable,
            ) from e
        return unwrap_envelope(command, from_bytes(body))

    async def request(self, parameters: Mapping[str, Any]) -> list[Entity]:
        """요청을 보내고 엔티티 목록을 반환합니다.

        최초 1회 + retry_count회까지 시도하며, 각 재시도 사이에 retry_delay만큼 대기합니다.

        Raises:
            RetryExhaustedError: 모든 시도가 실패한 경우
            CollectorError: 재시도 대상이 아닌 오류
        """
        command = str(parameters["command"])
        max_attempts = self._policy.retry_count + 1
        last_error: CollectorError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                return await self._attempt(command, parameters)
            except CollectorError as e:
                last_error = e

            if not is_retryable(last_error):
                raise last_error

            if attempt < max_attempts:
                logger.warning(
                    f"{command} 요청 실패, 재시도 예정: {last_error}",
                    command=command,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error_domain=last_error.error_domain.value,
                    error_code=last_error.error_code.value,
                    retry_delay=self._policy.retry_delay,
                )
                await asyncio.sleep(self._policy.retry_delay)

        assert last_error is not None
        logger.error(
            f"{command} 요청 재시도 소진: {last_error}",
            command=command,
            attempts=max_attempts,
        )
        raise RetryExhaustedError(
            f"ERROR: {last_error}",
            original_exception=last_error,
            error_domain=last_error.error_domain,
            command=command,
            attempts=max_attempts,
        )
