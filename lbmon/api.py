"""Telemetry sources: the appliance REST API and an offline demo feed.

Every call returns an :class:`ApiResponse` envelope instead of raising, so a
caller only ever has to look at ``ok``. Transport errors, non-2xx statuses and
undecodable bodies all come back as ``ok=False`` with a short ``error``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    ok: bool
    data: T
    error: str | None = None


class TelemetrySource(Protocol):
    async def fetch_system_stats(self, node: str) -> ApiResponse[Any]: ...

    async def fetch_ha_status(self) -> ApiResponse[Any]: ...

    async def close(self) -> None: ...


# ── Appliance REST client ──────────────────────────────────────────────────


def _log_unauthorized() -> None:
    logger.error("Appliance API rejected the session (HTTP 401); log in again")


class ApplianceClient:
    """Async client for the dashboard backend's ``/api`` endpoints.

    Usage:
        async with ApplianceClient("http://127.0.0.1:5000") as client:
            res = await client.fetch_system_stats("primary")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        on_unauthorized: Callable[[], None] = _log_unauthorized,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.on_unauthorized = on_unauthorized
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ApplianceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> ApiResponse[Any]:
        session = self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.get(url, params=params) as response:
                if response.status == 401:
                    self.on_unauthorized()
                    return ApiResponse(False, {}, "HTTP 401")
                if not 200 <= response.status < 300:
                    logger.warning("API error [%s]: HTTP %d", path, response.status)
                    return ApiResponse(False, {}, f"HTTP {response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            error = str(exc) or type(exc).__name__
            logger.warning("API error [%s]: %s", path, error)
            return ApiResponse(False, {}, error)
        return ApiResponse(True, data)

    async def fetch_system_stats(self, node: str) -> ApiResponse[Any]:
        return await self._get("/api/system-stats", {"node": node})

    async def fetch_ha_status(self) -> ApiResponse[Any]:
        return await self._get("/api/ha-status")


# ── Demo feed ──────────────────────────────────────────────────────────────

DEMO_SYSTEM_STATS: dict[str, dict[str, Any]] = {
    "primary": {
        "ip": "10.0.0.100",
        "version": "14.1-29.63 (ns-14.1-29.63.nc)",
        "ha_role": "PRIMARY",
        "hostname": "ns-primary-01",
        "ns_stats": {"ns": {"cpuusagepcnt": 23.5, "memusagepcnt": 45.2, "httprequestsrate": 1247}},
    },
    "secondary": {
        "ip": "10.0.0.200",
        "version": "14.1-29.63 (ns-14.1-29.63.nc)",
        "ha_role": "SECONDARY",
        "hostname": "ns-secondary-01",
        "ns_stats": {"ns": {"cpuusagepcnt": 8.1, "memusagepcnt": 38.7, "httprequestsrate": 0}},
    },
}

DEMO_HA_NODES: list[dict[str, str]] = [
    {"ipaddress": "10.0.0.100", "hostname": "ns-primary-01", "state": "PRIMARY", "hasync": "SUCCESS"},
    {"ipaddress": "10.0.0.200", "hostname": "ns-secondary-01", "state": "SECONDARY", "hasync": "SUCCESS"},
]


class DemoTelemetrySource:
    """Canned HA pair with a little jitter so the gauges and trend move."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def fetch_system_stats(self, node: str) -> ApiResponse[Any]:
        base = DEMO_SYSTEM_STATS["secondary" if node == "secondary" else "primary"]
        counters = base["ns_stats"]["ns"]
        variation = self._rng.random() * 5 - 2.5
        payload = copy.deepcopy(base)
        payload["ns_stats"]["ns"] = {
            "cpuusagepcnt": max(0.0, min(100.0, counters["cpuusagepcnt"] + variation)),
            "memusagepcnt": counters["memusagepcnt"],
            "httprequestsrate": max(
                0, counters["httprequestsrate"] + math.floor(self._rng.random() * 200 - 100)
            ),
        }
        return ApiResponse(True, payload)

    async def fetch_ha_status(self) -> ApiResponse[Any]:
        return ApiResponse(True, {"hanode": copy.deepcopy(DEMO_HA_NODES)})

    async def close(self) -> None:
        return None
