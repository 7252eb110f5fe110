from __future__ import annotations

import asyncio
import io
from collections.abc import Mapping
from typing import Any

import pytest

import src.application.scheduler as scheduler_module
from src.application.scheduler import PollScheduler
from src.common.events import ErrorEvent, EventBus
from src.common.exceptions.base import RetryExhaustedError
from src.common.metrics.definitions import DEFINITIONS
from src.common.metrics.emitter import MetricEmitter
from tests.factory_builders import LoggerSpy, build_capacity, build_zone

ENTITIES: dict[str, list[dict[str, Any]]] = {
    "listZones": [
        build_zone("Zone B", build_capacity(0, total=2048, used=1024)),
        build_zone("Zone A", build_capacity(0, total=1000, used=200)),
    ],
    "listSystemVms": [
        {"zonename": "Zone A", "name": "v-1-VM", "activeviewersessions": 2},
        {"zonename": "Zone A", "name": "v-2-VM", "activeviewersessions": 3},
    ],
    "listEvents": [{"level": "INFO"}, {"level": "ERROR"}],
    "listAlerts": [{"type": 0}, {"type": 2}, {"type": 2}],
    "listAccounts": [{"state": "enabled"}, {"state": "disabled"}],
}


class _PaginatorStub:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.calls: list[str] = []

    async def fetch_all(self, template: Mapping[str, Any]) -> list[dict[str, Any]]:
        command = template["command"]
        self.calls.append(command)
        await asyncio.sleep(0)
        if command in self.failing:
            raise RetryExhaustedError("ERROR: connection refused", command=command, attempts=4)
        return ENTITIES[command]


def _build_scheduler(
    paginator: _PaginatorStub,
    stream: io.StringIO,
    **kwargs: Any,
) -> PollScheduler:
    return PollScheduler(
        paginator=paginator,  # type: ignore[arg-type]
        emitter=MetricEmitter(default_source="collector-01", stream=stream),
        poll_interval=0,
        clock=lambda: 1700000000.7,
        **kwargs,
    )


def _lines(stream: io.StringIO) -> list[str]:
    return stream.getvalue().splitlines()


@pytest.fixture(autouse=True)
def _clear_event_bus():
    EventBus.clear()
    yield
    EventBus.clear()


@pytest.mark.asyncio
async def test_run_cycle_emits_every_definition_with_cycle_timestamp() -> None:
    stream = io.StringIO()
    paginator = _PaginatorStub()
    scheduler = _build_scheduler(paginator, stream)

    report = await scheduler.run_cycle()

    lines = _lines(stream)
    assert sorted(paginator.calls) == sorted(d.command for d in DEFINITIONS)
    assert report.failed == []
    assert report.samples == len(lines)
    assert all(line.endswith(" 1700000000") for line in lines)
    assert "CLOUDSTACK_MEMORY_TOTAL 1000 Zone-A 1700000000" in lines
    assert "CLOUDSTACK_MEMORY_USED 1024 Zone-B 1700000000" in lines
    assert "CLOUDSTACK_ACTIVE_VIEWER_SESSIONS 5 Zone-A 1700000000" in lines
    assert "CLOUDSTACK_EVENTS_ERROR 1 collector-01 1700000000" in lines
    assert "CLOUDSTACK_ALERTS_STORAGE 2 collector-01 1700000000" in lines
    assert "CLOUDSTACK_ACCOUNTS_ENABLED 1 collector-01 1700000000" in lines


@pytest.mark.asyncio
async def test_zone_groups_are_emitted_in_sorted_order() -> None:
    stream = io.StringIO()
    scheduler = _build_scheduler(_PaginatorStub(), stream)

    await scheduler.run_cycle()

    sources = [line.split()[2] for line in _lines(stream) if line.startswith("CLOUDSTACK_MEMORY_TOTAL")]
    assert sources == ["Zone-A", "Zone-B"]


@pytest.mark.asyncio
async def test_advanced_metrics_add_granular_samples() -> None:
    stream = io.StringIO()
    scheduler = _build_scheduler(_PaginatorStub(), stream, advanced_metrics=True)

    await scheduler.run_cycle()

    viewer_lines = [line for line in _lines(stream) if line.startswith("CLOUDSTACK_ACTIVE_VIEWER_SESSIONS")]
    assert viewer_lines == [
        "CLOUDSTACK_ACTIVE_VIEWER_SESSIONS 5 Zone-A 1700000000",
        "CLOUDSTACK_ACTIVE_VIEWER_SESSIONS 2 Zone-A.v-1-VM 1700000000",
        "CLOUDSTACK_ACTIVE_VIEWER_SESSIONS 3 Zone-A.v-2-VM 1700000000",
    ]


@pytest.mark.asyncio
async def test_advanced_metrics_disabled_by_default() -> None:
    stream = io.StringIO()
    scheduler = _build_scheduler(_PaginatorStub(), stream)

    await scheduler.run_cycle()

    assert not any("v-1-VM" in line for line in _lines(stream))


@pytest.mark.asyncio
async def test_failed_pipeline_skips_only_its_metrics() -> None:
    stream = io.StringIO()
    events: list[ErrorEvent] = []

    async def _capture(event: ErrorEvent) -> None:
        events.append(event)

    EventBus.on(ErrorEvent, _capture)
    scheduler = _build_scheduler(_PaginatorStub(failing={"listZones"}), stream)

    report = await scheduler.run_cycle()

    lines = _lines(stream)
    assert report.failed == ["listZones"]
    assert not any(line.startswith("CLOUDSTACK_MEMORY") for line in lines)
    assert any(line.startswith("CLOUDSTACK_EVENTS_INFO") for line in lines)
    assert [(e.kind, e.target) for e in events] == [("poll_pipeline", "listZones")]


@pytest.mark.asyncio
async def test_fatal_policy_propagates_retry_exhaustion() -> None:
    stream = io.StringIO()
    scheduler = _build_scheduler(
        _PaginatorStub(failing={"listAlerts"}), stream, fatal_on_retry_exhausted=True
    )

    with pytest.raises(RetryExhaustedError):
        await scheduler.run_cycle()


@pytest.mark.asyncio
async def test_run_forever_repeats_cycles_after_join() -> None:
    stream = io.StringIO()
    paginator = _PaginatorStub()
    scheduler = _build_scheduler(paginator, stream)

    await scheduler.run_forever(max_cycles=2)

    assert len(paginator.calls) == 2 * len(DEFINITIONS)


@pytest.mark.asyncio
async def test_stop_ends_run_forever() -> None:
    stream = io.StringIO()
    paginator = _PaginatorStub()
    scheduler = PollScheduler(
        paginator=paginator,  # type: ignore[arg-type]
        emitter=MetricEmitter(default_source="collector-01", stream=stream),
        poll_interval=60,
    )

    task = asyncio.create_task(scheduler.run_forever())
    while len(paginator.calls) < len(DEFINITIONS):
        await asyncio.sleep(0)
    scheduler.stop()
    await asyncio.wait_for(task, timeout=1)

    assert len(paginator.calls) == len(DEFINITIONS)


@pytest.mark.asyncio
async def test_failed_pipeline_is_reported_through_event_only(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    spy = LoggerSpy()
    monkeypatch.setattr(scheduler_module, "logger", spy)
    events: list[ErrorEvent] = []

    async def _capture(event: ErrorEvent) -> None:
        events.append(event)

    EventBus.on(ErrorEvent, _capture)
    scheduler = _build_scheduler(_PaginatorStub(failing={"listEvents"}), io.StringIO())

    await scheduler.run_cycle()

    assert len(events) == 1
    assert spy.levels("error") == []
    assert spy.levels("warning") == []


class _HangingPaginatorStub(_PaginatorStub):
    """실패 명령 외에는 취소될 때까지 응답하지 않습니다."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__(failing)
        self.cancelled: list[str] = []

    async def fetch_all(self, template: Mapping[str, Any]) -> list[dict[str, Any]]:
        command = template["command"]
        if command in self.failing:
            return await super().fetch_all(template)
        self.calls.append(command)
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled.append(command)
            raise
        return []


@pytest.mark.asyncio
async def test_fatal_failure_cancels_in_flight_pipelines() -> None:
    paginator = _HangingPaginatorStub(failing={"listAlerts"})
    scheduler = _build_scheduler(paginator, io.StringIO(), fatal_on_retry_exhausted=True)

    with pytest.raises(RetryExhaustedError):
        await asyncio.wait_for(scheduler.run_cycle(), timeout=5)

    others = sorted(d.command for d in DEFINITIONS if d.command != "listAlerts")
    assert sorted(paginator.cancelled) == others
