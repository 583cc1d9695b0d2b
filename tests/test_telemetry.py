"""Tests for lbmon.telemetry."""

from __future__ import annotations

import pytest

from lbmon.telemetry import (
    HANode,
    NodeIdentity,
    TelemetrySnapshot,
    _safe_float,
    ha_role_label,
    normalize_ha_nodes,
    normalize_snapshot,
)

# ── _safe_float ────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (23.5, 23.5),
        ("45.2", 45.2),
        (7, 7.0),
        (None, 0.0),
        ("", 0.0),
        ("n/a", 0.0),
        ([], 0.0),
        (float("nan"), 0.0),
        (float("inf"), 0.0),
    ],
)
def test_safe_float(value: object, expected: float) -> None:
    assert _safe_float(value) == expected


# ── normalize_snapshot ─────────────────────────────────────────────────────


class TestNormalizeSnapshot:
    def test_nested_appliance_payload(self) -> None:
        payload = {
            "ip": "10.0.0.100",
            "version": "14.1-29.63",
            "ha_role": "PRIMARY",
            "hostname": "ns-primary-01",
            "ns_stats": {"ns": {"cpuusagepcnt": 23.5, "memusagepcnt": 45.2, "httprequestsrate": 1247}},
        }
        snap = normalize_snapshot(payload)
        assert snap == TelemetrySnapshot(
            cpu_percent=23.5,
            mem_percent=45.2,
            http_request_rate=1247.0,
            identity=NodeIdentity("10.0.0.100", "ns-primary-01", "14.1-29.63", "PRIMARY"),
        )

    def test_alternate_spellings(self) -> None:
        snap = normalize_snapshot({"ns_stats": {"ns": {"cpuusage": "12", "memusagepct": "34.5"}}})
        assert snap.cpu_percent == 12.0
        assert snap.mem_percent == 34.5

    def test_primary_spelling_wins(self) -> None:
        snap = normalize_snapshot({"ns_stats": {"ns": {"cpuusagepcnt": 40, "cpuusage": 90}}})
        assert snap.cpu_percent == 40.0

    def test_flat_payload(self) -> None:
        snap = normalize_snapshot({
            "cpuPercent": 5,
            "memPercent": 6,
            "httpRequestRate": 7,
            "identity": {"ip": "1.2.3.4", "hostname": "adc", "version": "v", "haRole": "STANDALONE"},
        })
        assert (snap.cpu_percent, snap.mem_percent, snap.http_request_rate) == (5.0, 6.0, 7.0)
        assert snap.identity.ha_role == "STANDALONE"
        assert snap.identity.ip == "1.2.3.4"

    def test_missing_fields_default_to_zero(self) -> None:
        snap = normalize_snapshot({})
        assert snap == TelemetrySnapshot()
        assert snap.identity == NodeIdentity()

    def test_malformed_numbers_default_to_zero(self) -> None:
        snap = normalize_snapshot({"ns_stats": {"ns": {"cpuusagepcnt": "busy", "httprequestsrate": None}}})
        assert snap.cpu_percent == 0.0
        assert snap.http_request_rate == 0.0

    def test_ns_stats_not_a_mapping(self) -> None:
        snap = normalize_snapshot({"ns_stats": "unavailable", "cpuPercent": 3})
        assert snap.cpu_percent == 3.0

    @pytest.mark.parametrize("payload", [None, [], "oops", 42])
    def test_non_object_payload_rejected(self, payload: object) -> None:
        with pytest.raises(ValueError):
            normalize_snapshot(payload)


# ── normalize_ha_nodes ─────────────────────────────────────────────────────


class TestNormalizeHANodes:
    def test_hanode_envelope(self) -> None:
        nodes = normalize_ha_nodes({"hanode": [
            {"ipaddress": "10.0.0.100", "hostname": "ns-primary-01", "state": "PRIMARY", "hasync": "SUCCESS"},
            {"ip": "10.0.0.200", "hacurstate": "SECONDARY"},
        ]})
        assert nodes == [
            HANode("10.0.0.100", "ns-primary-01", "PRIMARY", "SUCCESS"),
            HANode("10.0.0.200", "", "SECONDARY", ""),
        ]

    def test_bare_list(self) -> None:
        nodes = normalize_ha_nodes([{"ip": "10.0.0.1"}])
        assert nodes == [HANode(ip="10.0.0.1")]

    def test_empty_and_missing(self) -> None:
        assert normalize_ha_nodes({}) == []
        assert normalize_ha_nodes(None) == []

    def test_skips_non_object_entries(self) -> None:
        assert normalize_ha_nodes({"hanode": ["junk", {"ip": "1.1.1.1"}]}) == [HANode(ip="1.1.1.1")]

    def test_rejects_non_list(self) -> None:
        with pytest.raises(ValueError):
            normalize_ha_nodes({"hanode": "broken"})


# ── ha_role_label ──────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("role", "expected"),
    [
        ("PRIMARY", "PRIMARY"),
        ("Primary (active)", "PRIMARY"),
        ("secondary", "SECONDARY"),
        ("STANDALONE", "STANDALONE"),
        ("CLAIMING", "CLAIMING"),
        ("", "Unknown"),
    ],
)
def test_ha_role_label(role: str, expected: str) -> None:
    assert ha_role_label(role) == expected
