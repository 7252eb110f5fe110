"""통합 Settings 모듈 - 환경변수 + 플러그인 파라미터 파일 기반

이 모듈의 역할:
    1. 코드에 합리적인 기본값 제공
    2. 환경변수로 오버라이드
    3. 호스트 에이전트의 param.json으로 다시 오버라이드 (우선순위 최상)
    4. 타입 안전성 보장 (Pydantic 자동 검증) + 범위 보정(clamp)

설정 우선순위:
    1. param.json (load_agent_settings에 전달된 파일)
    2. 환경변수 - export CLOUDSTACK_API_KEY=...
    3. .env 파일 - src/config/.env
    4. 코드 기본값 (settings.py 내부)

사용 예시:
    # 호스트 에이전트가 만든 param.json 사용
    python main.py --params param.json

    # 환경변수만 사용
    export CLOUDSTACK_API_KEY=...
    export CLOUDSTACK_SECRET_KEY=...
    python main.py
"""

from __future__ import annotations

import math
import re
import socket
from pathlib import Path
from typing import Any, Final

import orjson
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.common.exceptions.base import ConfigError
from src.core.dto.internal.common import ApiEndpointDomain, RequestPolicyDomain
from src.core.types import ErrorCode

# 설정 파일 경로
config_dir = Path(__file__).parent

# param.json(camelCase) → Settings 필드 매핑
PARAMETER_KEYS: Final[dict[str, str]] = {
    "serverHost": "server_host",
    "serverPort": "server_port",
    "apiKey": "api_key",
    "secretKey": "secret_key",
    "pollRetryCount": "poll_retry_count",
    "pollRetryDelay": "poll_retry_delay",
    "pollInterval": "poll_interval",
    "advancedMetrics": "advanced_metrics",
    "source": "source",
}

# 문자열 필드는 JSON 타입과 무관하게 문자열로 받아들입니다 (예: 숫자 apiKey)
TEXT_FIELDS: Final[frozenset[str]] = frozenset({"server_host", "api_key", "secret_key", "source"})


def env_settings(prefix: str) -> SettingsConfigDict:
    """환경변수 통합 설정

    Args:
        prefix: 환경변수 접두사 (예: CLOUDSTACK_, LOG_)

    Returns:
        Pydantic 설정 딕셔너리
    """
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=config_dir / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def fence(value: Any, default: int, lower: int, upper: int) -> int:
    """숫자로 해석 가능한 값만 받아들이고 [lower, upper] 범위로 보정합니다.

    해석이 불가능하면(bool, nan, inf 포함) default를 사용합니다.
    """
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(min(max(number, lower), upper))


class AgentSettings(BaseSettings):
    """CloudStack 수집기 설정 (환경변수 기반)

    환경변수 오버라이드:
        CLOUDSTACK_SERVER_HOST: 관리 서버 호스트 (기본: localhost)
        CLOUDSTACK_SERVER_PORT: 관리 서버 포트 (기본: 8080)
        CLOUDSTACK_API_KEY: API 키 (필수)
        CLOUDSTACK_SECRET_KEY: 서명용 시크릿 키 (필수)
        CLOUDSTACK_POLL_RETRY_COUNT: 재시도 횟수 (기본: 3, 0~1000)
        CLOUDSTACK_POLL_RETRY_DELAY: 재시도 대기 ms (기본: 3000, 0~3600000)
        CLOUDSTACK_POLL_INTERVAL: 수집 주기 ms (기본: 5000, 100~86400000)
        CLOUDSTACK_ADVANCED_METRICS: 세분화 메트릭 활성화 (기본: false)
        CLOUDSTACK_SOURCE: 메트릭 source 라벨 (기본: 호스트명)
        CLOUDSTACK_REQUEST_TIMEOUT: HTTP 요청 타임아웃 초 (기본: 30)
        CLOUDSTACK_FATAL_ON_RETRY_EXHAUSTED: 재시도 소진 시 프로세스 종료 (기본: false)
    """

    server_host: str = "localhost"
    server_port: int = 8080
    api_key: str | None = None  # 필수 (load_agent_settings에서 검증)
    secret_key: str | None = None  # 필수 (load_agent_settings에서 검증)

    poll_retry_count: int = 3
    poll_retry_delay: int = 3000
    poll_interval: int = 5000
    advanced_metrics: bool = False
    source: str = ""

    request_timeout: float = 30.0
    fatal_on_retry_exhausted: bool = False

    model_config = env_settings("CLOUDSTACK_")

    @field_validator("poll_retry_count", mode="before")
    @classmethod
    def _fence_retry_count(cls, value: Any) -> int:
        return fence(value, 3, 0, 1000)

    @field_validator("poll_retry_delay", mode="before")
    @classmethod
    def _fence_retry_delay(cls, value: Any) -> int:
        return fence(value, 3000, 0, 1000 * 60 * 60)

    @field_validator("poll_interval", mode="before")
    @classmethod
    def _fence_poll_interval(cls, value: Any) -> int:
        return fence(value, 5000, 100, 1000 * 60 * 60 * 24)

    @field_validator("source", mode="after")
    @classmethod
    def _default_source(cls, value: str) -> str:
        # 공백만 있는 값은 미지정으로 간주
        if re.sub(r"\s+", "", value) == "":
            return socket.gethostname()
        return value

    @property
    def endpoint(self) -> ApiEndpointDomain:
        return ApiEndpointDomain(
            host=self.server_host,
            port=self.server_port,
            api_key=self.api_key or "",
            secret_key=self.secret_key or "",
        )

    @property
    def request_policy(self) -> RequestPolicyDomain:
        return RequestPolicyDomain(
            retry_count=self.poll_retry_count,
            retry_delay_ms=self.poll_retry_delay,
            request_timeout=self.request_timeout,
        )

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval / 1000.0


class LoggingSettings(BaseSettings):
    """로깅 설정 (환경변수 기반)

    환경변수 오버라이드:
        LOG_LEVEL: 로깅 레벨 (기본: INFO)
        LOG_TO_FILE: 파일 로깅 여부 (기본: false)
        LOG_DIR: 로그 디렉토리 (기본: logs)
    """

    level: str = "INFO"
    to_file: bool = False
    dir: str = "logs"

    model_config = env_settings("LOG_")


def read_parameter_file(param_file: str | Path) -> dict[str, Any]:
    """호스트 에이전트의 param.json을 Settings 필드 이름으로 변환합니다.

    - 파일이 없으면 빈 dict (환경변수/기본값만 사용)
    - 해석 불가능한 파일은 ConfigError
    - advancedMetrics는 JSON true일 때만 활성화
    """
    path = Path(param_file)
    if not path.exists():
        return {}

    try:
        raw = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ConfigError(
            f"Parameter file {path} is not valid JSON: {e}",
            original_exception=e,
            error_code=ErrorCode.INVALID_PARAMETER_FILE,
        ) from e

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Parameter file {path} must contain a JSON object",
            error_code=ErrorCode.INVALID_PARAMETER_FILE,
        )

    overrides: dict[str, Any] = {}
    for key, field_name in PARAMETER_KEYS.items():
        if key not in raw or raw[key] is None:
            continue
        if key == "advancedMetrics":
            overrides[field_name] = raw[key] is True
        elif field_name in TEXT_FIELDS:
            overrides[field_name] = str(raw[key])
        else:
            overrides[field_name] = raw[key]
    return overrides


def load_agent_settings(param_file: str | Path | None = None) -> AgentSettings:
    """Settings를 로드하고 필수 자격 증명을 검증합니다.

    Raises:
        ConfigError: API/Secret 키 누락 또는 파라미터 파일 오류
    """
    overrides = read_parameter_file(param_file) if param_file else {}
    try:
        settings = AgentSettings(**overrides)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid collector settings: {e}",
            original_exception=e,
            error_code=ErrorCode.INVALID_PARAMETER_FILE,
        ) from e

    if not settings.api_key:
        raise ConfigError("API Key must be provided (see CloudStack UI)!")
    if not settings.secret_key:
        raise ConfigError("Secret Key must be provided (see CloudStack UI)!")

    return settings


# ========================================
# 설정 인스턴스 (싱글톤)
# ========================================
# 환경변수 로드 (환경변수 없으면 기본값 사용)

logging_settings = LoggingSettings()
