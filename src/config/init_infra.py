from contextlib import asynccontextmanager
from typing import AsyncIterator

from src.core.dto.internal.common import RequestPolicyDomain
from src.infra.cloudstack.client import CloudStackClient
from src.infra.cloudstack.signer import RequestSigner


@asynccontextmanager
async def init_cloudstack_client(
    signer: RequestSigner, policy: RequestPolicyDomain
) -> AsyncIterator[CloudStackClient]:
    """CloudStackClient HTTP 세션 초기화 및 정리"""
    client = CloudStackClient(signer=signer, policy=policy)
    await client.start()
    yield client
    await client.close()
