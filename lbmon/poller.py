"""Periodic telemetry sampler for the overview view.

One :class:`Sampler` serves one mounted view. ``start(node, callback)`` opens a
:class:`PollSession`: it fetches immediately, then again every ``interval``
seconds from a timer task, without waiting for earlier fetches to finish (so
slow responses can overlap and the last one to arrive wins).

Every session carries an epoch number, bumped by each ``start``. Calling the
disposer (directly or through a node switch) cancels the timer on the spot and
marks the session disposed. A fetch that was already in flight still completes,
but its result is thrown away unless its session is still the current, live one
with the latest epoch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from lbmon import history
from lbmon.api import ApiResponse, TelemetrySource
from lbmon.telemetry import (
    HANode,
    NodeIdentity,
    TelemetrySnapshot,
    normalize_ha_nodes,
    normalize_snapshot,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 10.0
DEFAULT_NODES = ("primary", "secondary")


@dataclass(frozen=True)
class SamplerState:
    """Derived scalars plus the request-rate window for the current node."""

    cpu_percent: float = 0.0
    mem_percent: float = 0.0
    http_request_rate: float = 0.0
    history: tuple[float, ...] = ()
    identity: NodeIdentity | None = None
    ha_nodes: tuple[HANode, ...] = ()
    last_update: float | None = None  # time.monotonic() of the last applied result


@dataclass
class PollSession:
    node: str
    epoch: int
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    disposed: bool = False


SnapshotCallback = Callable[[SamplerState], None]


class Sampler:
    def __init__(
        self,
        source: TelemetrySource,
        interval: float = POLL_INTERVAL,
        nodes: Sequence[str] = DEFAULT_NODES,
        history_capacity: int = history.HISTORY_CAPACITY,
    ) -> None:
        self.source = source
        self.interval = interval
        self.nodes = tuple(nodes)
        self.history_capacity = history_capacity
        self.state = SamplerState()
        self._session: PollSession | None = None
        self._epoch = 0
        self._on_snapshot: SnapshotCallback | None = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def session(self) -> PollSession | None:
        return self._session

    @property
    def node(self) -> str | None:
        return self._session.node if self._session else None

    # ── Session lifecycle ───────────────────────────────────────────────

    def start(self, node: str, on_snapshot: SnapshotCallback) -> Callable[[], None]:
        """Begin polling *node*; returns an idempotent disposer.

        Must be called from inside a running event loop. Any previous session
        is disposed first, which also empties the history.
        """
        if node not in self.nodes:
            raise ValueError(f"unknown node {node!r} (expected one of {', '.join(self.nodes)})")
        loop = asyncio.get_running_loop()

        if self._session is not None:
            self._dispose(self._session)

        self._epoch += 1
        session = PollSession(node=node, epoch=self._epoch)
        self._session = session
        self._on_snapshot = on_snapshot
        self.state = SamplerState()

        self._spawn_fetch(session)
        session.task = loop.create_task(self._timer(session))
        logger.info("Polling %s every %gs (epoch %d)", node, self.interval, session.epoch)

        def dispose() -> None:
            self._dispose(session)

        return dispose

    def switch_node(self, node: str) -> Callable[[], None]:
        if self._on_snapshot is None:
            raise RuntimeError("switch_node() called before start()")
        return self.start(node, self._on_snapshot)

    def refresh(self) -> asyncio.Task[None] | None:
        """Fetch now for the current session, alongside the regular timer."""
        if self._session is None:
            return None
        return self._spawn_fetch(self._session)

    def _dispose(self, session: PollSession) -> None:
        if session.disposed:
            return
        session.disposed = True
        if session.task is not None:
            session.task.cancel()
        if self._session is session:
            self._session = None
            self.state = SamplerState()
        logger.info("Stopped polling %s (epoch %d)", session.node, session.epoch)

    async def wait_idle(self) -> None:
        """Wait until every fetch issued so far has completed."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    async def close(self) -> None:
        if self._session is not None:
            self._dispose(self._session)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ── Fetching ────────────────────────────────────────────────────────

    async def _timer(self, session: PollSession) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self._spawn_fetch(session)

    def _spawn_fetch(self, session: PollSession) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._poll(session))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def _is_current(self, session: PollSession) -> bool:
        return (
            not session.disposed
            and self._session is session
            and session.epoch == self._epoch
        )

    async def _poll(self, session: PollSession) -> None:
        stats, ha = await asyncio.gather(
            self.source.fetch_system_stats(session.node),
            self.source.fetch_ha_status(),
            return_exceptions=True,
        )
        if not self._is_current(session):
            logger.debug("Discarding stale result for %s (epoch %d)", session.node, session.epoch)
            return

        snapshot = self._accept_stats(session.node, stats)
        ha_nodes = self._accept_ha(ha)
        if snapshot is None and ha_nodes is None:
            return

        state = self.state
        if snapshot is not None:
            state = replace(
                state,
                cpu_percent=snapshot.cpu_percent,
                mem_percent=snapshot.mem_percent,
                http_request_rate=snapshot.http_request_rate,
                history=history.push(
                    state.history, snapshot.http_request_rate, self.history_capacity
                ),
                identity=snapshot.identity,
                last_update=time.monotonic(),
            )
        if ha_nodes is not None:
            state = replace(state, ha_nodes=tuple(ha_nodes))
        self.state = state

        if self._on_snapshot is not None:
            self._on_snapshot(state)

    def _accept_stats(self, node: str, result: ApiResponse[Any] | BaseException) -> TelemetrySnapshot | None:
        if isinstance(result, BaseException):
            logger.warning("System stats fetch for %s failed: %s", node, result)
            return None
        if not result.ok:
            logger.warning("System stats fetch for %s failed: %s", node, result.error)
            return None
        try:
            return normalize_snapshot(result.data)
        except ValueError as exc:
            logger.warning("Malformed system stats for %s: %s", node, exc)
            return None

    def _accept_ha(self, result: ApiResponse[Any] | BaseException) -> list[HANode] | None:
        if isinstance(result, BaseException):
            logger.warning("HA status fetch failed: %s", result)
            return None
        if not result.ok:
            logger.warning("HA status fetch failed: %s", result.error)
            return None
        try:
            return normalize_ha_nodes(result.data)
        except ValueError as exc:
            logger.warning("Malformed HA status: %s", exc)
            return None
