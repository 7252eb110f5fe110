"""
Dependency Injection Containers

이 모듈은 애플리케이션의 모든 의존성을 관리하는 DI 컨테이너를 정의합니다.

아키텍처:
- InfrastructureContainer: 서명기, HTTP 클라이언트(Resource), 페이지 수집기
- ApplicationContainer: 최상위 컨테이너 (Emitter, Scheduler)

주요 패턴:
- Dependency Provider: 검증이 끝난 AgentSettings 주입
- Resource Provider: aiohttp 세션 async init/shutdown 자동 관리
- Singleton Provider: 프로세스 전역에서 하나만 사용하는 컴포넌트

사용 예시:
    container = ApplicationContainer(settings=load_agent_settings("param.json"))
    await container.init_resources()
    scheduler = await container.scheduler()
"""

from dependency_injector import containers, providers

from src.application.scheduler import PollScheduler
from src.common.metrics.emitter import MetricEmitter
from src.config.init_infra import init_cloudstack_client
from src.config.settings import AgentSettings
from src.infra.cloudstack.paginator import Paginator
from src.infra.cloudstack.signer import RequestSigner


# ========================================
# 1. Infrastructure Container (인프라 레이어)
# ========================================
class InfrastructureContainer(containers.DeclarativeContainer):
    """인프라 컨테이너

    - 관리 API 서명/요청/페이지네이션
    - HTTP 세션은 Resource로 라이프사이클 관리
    """

    settings = providers.Dependency(instance_of=AgentSettings)

    signer = providers.Singleton(
        RequestSigner,
        endpoint=settings.provided.endpoint,
    )

    client = providers.Resource(
        init_cloudstack_client,
        signer=signer,
        policy=settings.provided.request_policy,
    )

    paginator = providers.Singleton(
        Paginator,
        client=client,
        page_size=settings.provided.request_policy.page_size,
    )


# ========================================
# 2. Application Container (최상위)
# ========================================
class ApplicationContainer(containers.DeclarativeContainer):
    """애플리케이션 컨테이너

    Features:
    - Settings는 시작 시 한 번 검증된 인스턴스를 주입
    - 테스트 시 provider override로 Mock 주입 가능
    """

    settings = providers.Dependency(instance_of=AgentSettings)

    infra = providers.Container(InfrastructureContainer, settings=settings)

    emitter = providers.Singleton(
        MetricEmitter,
        default_source=settings.provided.source,
    )

    scheduler = providers.Singleton(
        PollScheduler,
        paginator=infra.paginator,
        emitter=emitter,
        poll_interval=settings.provided.poll_interval_seconds,
        advanced_metrics=settings.provided.advanced_metrics,
        fatal_on_retry_exhausted=settings.provided.fatal_on_retry_exhausted,
    )
