"""CloudStack 스타일 요청 서명.

1. response=json, apiKey 주입
2. 모든 키/값 URL 인코딩 후 `key=value`를 '&'로 결합 → 쿼리 문자열
3. 같은 인코딩 쌍을 정렬 → '&' 결합 → 전체 소문자화 → HMAC-SHA1
4. base64 → URL 인코딩 → signature
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Mapping
from urllib.parse import quote

from src.core.dto.internal.common import ApiEndpointDomain


def url_encode(value: object) -> str:
    """비예약 문자(영숫자, `-_.~`) 외에는 모두 퍼센트 인코딩합니다."""
    return quote(str(value), safe="")


class RequestSigner:
    """파라미터 맵 → 서명된 요청 URI"""

    def __init__(self, endpoint: ApiEndpointDomain) -> None:
        self._endpoint = endpoint

    def canonical_pairs(self, parameters: Mapping[str, object]) -> list[str]:
        """response/apiKey를 포함한 인코딩된 `key=value` 쌍 (입력 순서 유지)."""
        merged: dict[str, object] = dict(parameters)
        merged["response"] = "json"
        merged["apiKey"] = self._endpoint.api_key
        return [f"{url_encode(key)}={url_encode(value)}" for key, value in merged.items()]

    def signature(self, pairs: list[str]) -> str:
        """정렬 → 결합 → 소문자화한 문자열의 HMAC-SHA1 서명 (URL 인코딩 포함)."""
        text = "&".join(sorted(pairs)).lower()
        digest = hmac.new(
            self._endpoint.secret_key.encode("utf-8"),
            text.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return url_encode(base64.b64encode(digest).decode("ascii"))

    def sign(self, parameters: Mapping[str, object]) -> str:
        """서명된 전체 URI를 반환합니다. 입력 파라미터는 변경하지 않습니다."""
        pairs = self.canonical_pairs(parameters)
        query = "&".join(pairs)
        return f"{self._endpoint.base_url}?{query}&signature={self.signature(pairs)}"
