from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.common.logger import PipelineLogger
from src.core.dto.internal.common import DEFAULT_PAGE_SIZE
from src.infra.cloudstack.client import CloudStackClient, Entity

logger = PipelineLogger.get_logger("paginator", "infra")


class Paginator:
    """page=1부터 요청을 반복하며 결과를 누적합니다.

    마지막 페이지가 page_size와 정확히 같을 때만 다음 페이지를 요청합니다.
    (항상 가득 찬 페이지를 돌려주는 서버라면 종료되지 않습니다.)
    """

    def __init__(self, client: CloudStackClient, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._client = client
        self._page_size = page_size

    async def fetch_all(self, template: Mapping[str, Any]) -> list[Entity]:
        """요청 템플릿 기준 전체 엔티티 목록. 템플릿 자체는 변경하지 않습니다."""
        parameters: dict[str, Any] = dict(template)
        items: list[Entity] = []
        page = 0

        while True:
            page += 1
            parameters["page"] = str(page)
            parameters["pagesize"] = str(self._page_size)

            data = await self._client.request(parameters)
            items.extend(data)
            logger.debug(
                f"{parameters['command']}: page {page} returned {len(data)} items",
                command=parameters["command"],
                page=page,
                page_items=len(data),
            )

            if len(data) != self._page_size:
                logger.debug(
                    f"{parameters['command']}: {len(items)} items in {page} page(s)",
                    command=parameters["command"],
                    pages=page,
                    items=len(items),
                )
                return items
