from __future__ import annotations

import pytest

from src.common.metrics.definitions import DEFINITIONS, CapacityType, metric_ids
from src.core.dto.internal.metrics import AggregatorKind, CapacityExtractor, FieldExtractor

EXPECTED_METRIC_IDS = [
    "CLOUDSTACK_MEMORY_TOTAL",
    "CLOUDSTACK_MEMORY_USED",
    "CLOUDSTACK_CPU_TOTAL",
    "CLOUDSTACK_CPU_USED",
    "CLOUDSTACK_STORAGE_TOTAL",
    "CLOUDSTACK_STORAGE_USED",
    "CLOUDSTACK_STORAGE_ALLOCATED_TOTAL",
    "CLOUDSTACK_STORAGE_ALLOCATED_USED",
    "CLOUDSTACK_VIRTUAL_NETWORK_PUBLIC_IP_TOTAL",
    "CLOUDSTACK_VIRTUAL_NETWORK_PUBLIC_IP_USED",
    "CLOUDSTACK_PRIVATE_IP_TOTAL",
    "CLOUDSTACK_PRIVATE_IP_USED",
    "CLOUDSTACK_SECONDARY_STORAGE_TOTAL",
    "CLOUDSTACK_SECONDARY_STORAGE_USED",
    "CLOUDSTACK_VLAN_TOTAL",
    "CLOUDSTACK_VLAN_USED",
    "CLOUDSTACK_DIRECT_ATTACHED_PUBLIC_IP_TOTAL",
    "CLOUDSTACK_DIRECT_ATTACHED_PUBLIC_IP_USED",
    "CLOUDSTACK_LOCAL_STORAGE_TOTAL",
    "CLOUDSTACK_LOCAL_STORAGE_USED",
    "CLOUDSTACK_ACTIVE_VIEWER_SESSIONS",
    "CLOUDSTACK_EVENTS_INFO",
    "CLOUDSTACK_EVENTS_WARN",
    "CLOUDSTACK_EVENTS_ERROR",
    "CLOUDSTACK_ALERTS",
    "CLOUDSTACK_ALERTS_MEMORY",
    "CLOUDSTACK_ALERTS_CPU",
    "CLOUDSTACK_ALERTS_STORAGE",
    "CLOUDSTACK_ACCOUNTS_TOTAL",
    "CLOUDSTACK_ACCOUNTS_ENABLED",
]


def _by_command(command: str):
    return next(d for d in DEFINITIONS if d.command == command)


def test_metric_catalog_is_complete() -> None:
    assert metric_ids() == EXPECTED_METRIC_IDS


def test_requests_per_definition() -> None:
    assert [dict(d.request) for d in DEFINITIONS] == [
        {"command": "listZones", "showcapacities": "true"},
        {"command": "listSystemVms", "systemvmtype": "consoleproxy"},
        {"command": "listEvents", "listall": "true"},
        {"command": "listAlerts"},
        {"command": "listAccounts", "listall": "true"},
    ]


def test_zone_metrics_select_capacity_codes() -> None:
    zones = _by_command("listZones")

    assert zones.standard_grouping == ("name",)
    for kind in CapacityType:
        total = zones.standard_metrics[f"CLOUDSTACK_{kind.name}_TOTAL"]
        used = zones.standard_metrics[f"CLOUDSTACK_{kind.name}_USED"]
        assert isinstance(total.extractor, CapacityExtractor)
        assert (total.extractor.capacity_type, total.extractor.field) == (int(kind), "capacitytotal")
        assert (used.extractor.capacity_type, used.extractor.field) == (int(kind), "capacityused")
        assert total.aggregator.kind is AggregatorKind.SUM
    assert [int(k) for k in CapacityType] == list(range(10))


def test_alert_filters_use_numeric_type_codes() -> None:
    alerts = _by_command("listAlerts")

    assert alerts.standard_metrics["CLOUDSTACK_ALERTS"].aggregator.kind is AggregatorKind.COUNT
    assert alerts.standard_metrics["CLOUDSTACK_ALERTS_MEMORY"].aggregator.match_value == 0
    assert alerts.standard_metrics["CLOUDSTACK_ALERTS_CPU"].aggregator.match_value == 1
    assert alerts.standard_metrics["CLOUDSTACK_ALERTS_STORAGE"].aggregator.match_value == 2


def test_viewer_sessions_advanced_pass_falls_back_to_standard_metrics() -> None:
    viewers = _by_command("listSystemVms")

    grouping, metrics = viewers.advanced_pass()

    assert viewers.has_advanced is True
    assert grouping == ("zonename", "name")
    assert metrics is viewers.standard_metrics
    rule = metrics["CLOUDSTACK_ACTIVE_VIEWER_SESSIONS"]
    assert isinstance(rule.extractor, FieldExtractor)
    assert rule.extractor.field == "activeviewersessions"


def test_only_viewer_sessions_declare_advanced_pass() -> None:
    assert [d.command for d in DEFINITIONS if d.has_advanced] == ["listSystemVms"]


def test_registry_is_read_only() -> None:
    zones = _by_command("listZones")

    with pytest.raises(TypeError):
        zones.request["command"] = "listHosts"  # type: ignore[index]
    with pytest.raises(TypeError):
        zones.standard_metrics["X"] = zones.standard_metrics["CLOUDSTACK_CPU_USED"]  # type: ignore[index]
