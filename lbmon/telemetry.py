"""Normalization of appliance payloads into strict telemetry records.

The appliance API is loose about field names: CPU usage shows up as
``cpuusagepcnt`` or ``cpuusage``, HA nodes carry ``ipaddress`` or ``ip``, and
any field may be missing entirely. Everything below maps those spellings onto
one set of dataclasses so the poller and renderers never see raw payloads.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Wire spellings per concept, in priority order
CPU_KEYS = ("cpuPercent", "cpuusagepcnt", "cpuusage")
MEM_KEYS = ("memPercent", "memusagepcnt", "memusagepct")
HTTP_RATE_KEYS = ("httpRequestRate", "httprequestsrate")


@dataclass(frozen=True)
class NodeIdentity:
    ip: str = ""
    hostname: str = ""
    version: str = ""
    ha_role: str = ""


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One point-in-time read of a node's counters."""

    cpu_percent: float = 0.0
    mem_percent: float = 0.0
    http_request_rate: float = 0.0
    identity: NodeIdentity = field(default_factory=NodeIdentity)


@dataclass(frozen=True)
class HANode:
    ip: str = ""
    hostname: str = ""
    state: str = ""
    sync_status: str = ""


def _safe_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _first(sources: tuple[Mapping[str, Any], ...], keys: tuple[str, ...]) -> Any:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is not None and value != "":
                return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_snapshot(payload: Any) -> TelemetrySnapshot:
    """Build a snapshot from a system-stats payload.

    Counters are read from ``ns_stats.ns`` first and from the top level
    second. Missing or unparsable numbers become 0.

    Raises:
        ValueError: If the payload is not a JSON object at all.
    """
    if not isinstance(payload, Mapping):
        raise ValueError(f"system stats payload is {type(payload).__name__}, not an object")

    ns_stats = payload.get("ns_stats")
    counters = ns_stats.get("ns") if isinstance(ns_stats, Mapping) else None
    sources: tuple[Mapping[str, Any], ...] = (
        (counters, payload) if isinstance(counters, Mapping) else (payload,)
    )

    identity_src = payload.get("identity")
    ident = identity_src if isinstance(identity_src, Mapping) else payload

    return TelemetrySnapshot(
        cpu_percent=_safe_float(_first(sources, CPU_KEYS)),
        mem_percent=_safe_float(_first(sources, MEM_KEYS)),
        http_request_rate=_safe_float(_first(sources, HTTP_RATE_KEYS)),
        identity=NodeIdentity(
            ip=_text(ident.get("ip")),
            hostname=_text(ident.get("hostname")),
            version=_text(ident.get("version")),
            ha_role=_text(ident.get("ha_role") or ident.get("haRole")),
        ),
    )


def normalize_ha_nodes(payload: Any) -> list[HANode]:
    """Parse an HA-status payload (``{"hanode": [...]}`` or a bare list)."""
    if isinstance(payload, Mapping):
        entries = payload.get("hanode") or []
    else:
        entries = payload or []
    if not isinstance(entries, list):
        raise ValueError(f"HA node list is {type(entries).__name__}, not a list")

    nodes: list[HANode] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        nodes.append(HANode(
            ip=_text(_first((entry,), ("ipaddress", "ip"))),
            hostname=_text(entry.get("hostname")),
            state=_text(_first((entry,), ("state", "hacurstate"))),
            sync_status=_text(_first((entry,), ("hasync", "syncStatus"))),
        ))
    return nodes


def ha_role_label(role: str) -> str:
    """Collapse the appliance's verbose HA role strings to a badge label."""
    upper = role.upper()
    for label in ("PRIMARY", "SECONDARY", "STANDALONE"):
        if label in upper:
            return label
    return role or "Unknown"
