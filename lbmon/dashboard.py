"""Live overview dashboard for a load-balancing appliance HA pair.

Shows CPU and memory gauges plus a live HTTP request-rate trend for one node,
with the HA pair listed alongside. Data comes from the appliance dashboard API
(or the built-in demo feed) every 10 seconds.

Usage:
    uv run lbmon-dashboard --demo
    uv run lbmon-dashboard --node secondary --config path/to/config.toml
    uv run lbmon-dashboard --demo --headless --frames 5 --out frames/

In the window: q quits, r refreshes now, n switches to the next node.
Headless mode writes cpu.png, memory.png and http.png after every redraw.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import psutil

from lbmon import gauge, trend
from lbmon.api import ApplianceClient, DemoTelemetrySource, TelemetrySource
from lbmon.canvas import Canvas, parse_color
from lbmon.config import DEFAULT_CONFIG, dump_default_config, load_config
from lbmon.logging_config import setup_logging
from lbmon.poller import Sampler, SamplerState
from lbmon.telemetry import ha_role_label
from lbmon.viewport import ViewportTracker

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

# ── Constants ──────────────────────────────────────────────────────────────

MARGIN = 16
HEADER_H = 32
LABEL_H = 36
CELL_PX = 8  # assumed terminal cell width when sizing headless frames
EVENT_POLL = 0.05

C_WINDOW = "hsl(222, 47%, 7%)"
C_TEXT = "hsl(210, 40%, 96%)"
C_DIM = "hsl(215, 20%, 65%)"


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int | float) -> str:
    """Human-readable byte count (binary prefixes)."""
    v = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(v) < 1024:
            return f"{v:.1f} {unit}"
        v /= 1024
    return f"{v:.1f} TiB"


def fmt_rate(rate: float) -> str:
    return f"{round(rate)} req/s"


# ── Presentation binding ───────────────────────────────────────────────────


class OverviewView:
    """Binds a :class:`Sampler` to two gauges and the request-rate trend.

    The view owns its canvases and its viewport tracker. Every applied sample
    or width change repaints the affected canvases and fires ``on_frame``.
    """

    def __init__(
        self,
        sampler: Sampler,
        viewport: ViewportTracker,
        colors: dict[str, Any] | None = None,
        layout: dict[str, Any] | None = None,
    ) -> None:
        self.sampler = sampler
        self.viewport = viewport
        self.colors = {**DEFAULT_CONFIG["colors"], **(colors or {})}
        layout = {**DEFAULT_CONFIG["layout"], **(layout or {})}
        self.gauge_size = int(layout["gauge_size"])
        self.trend_height = int(layout["trend_height"])

        self.cpu_canvas = Canvas(self.gauge_size, self.gauge_size)
        self.mem_canvas = Canvas(self.gauge_size, self.gauge_size)
        self.http_canvas = Canvas(viewport.width, self.trend_height)

        self.on_frame: Callable[[OverviewView], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.error: Exception | None = None
        self.samples_applied = 0
        self.dirty = True
        self._dispose_poll: Callable[[], None] | None = None

    @property
    def state(self) -> SamplerState:
        return self.sampler.state

    @property
    def node(self) -> str | None:
        return self.sampler.node

    @property
    def mounted(self) -> bool:
        return self._dispose_poll is not None

    def mount(self, node: str) -> None:
        if self.mounted:
            raise RuntimeError("view is already mounted")
        self.viewport.attach()
        self.viewport.subscribe(self._on_resize)
        self._dispose_poll = self.sampler.start(node, self._on_sample)
        self.redraw()

    def switch_node(self, node: str) -> None:
        if not self.mounted:
            raise RuntimeError("view is not mounted")
        self._dispose_poll = self.sampler.start(node, self._on_sample)
        self.redraw()

    def refresh(self) -> asyncio.Task[None] | None:
        return self.sampler.refresh()

    def unmount(self) -> None:
        if self._dispose_poll is not None:
            self._dispose_poll()
            self._dispose_poll = None
        self.viewport.detach()

    def redraw(self) -> None:
        self.render_gauges()
        self.render_trend()
        self._frame()

    def render_gauges(self) -> None:
        state = self.state
        background = self.colors["background"]
        gauge.render(self.cpu_canvas, gauge.GaugeSpec(
            state.cpu_percent, 100.0, self.colors["cpu"], background, self.gauge_size,
        ))
        gauge.render(self.mem_canvas, gauge.GaugeSpec(
            state.mem_percent, 100.0, self.colors["memory"], background, self.gauge_size,
        ))

    def render_trend(self) -> list[tuple[float, float]]:
        return trend.render(self.http_canvas, trend.TrendSpec(
            self.state.history, self.colors["http"], self.viewport.width, self.trend_height,
        ))

    def save(self, out_dir: Path) -> None:
        self.cpu_canvas.save(out_dir / "cpu.png")
        self.mem_canvas.save(out_dir / "memory.png")
        self.http_canvas.save(out_dir / "http.png")

    def _on_sample(self, state: SamplerState) -> None:
        self.samples_applied += 1
        self._paint(self.redraw)

    def _on_resize(self, width: int) -> None:
        self._paint(self._repaint_trend)

    def _repaint_trend(self) -> None:
        self.render_trend()
        self._frame()

    def _paint(self, paint: Callable[[], None]) -> None:
        # Runs inside sampler tasks nobody awaits; the first failure is kept
        # for the loop driving the view to raise.
        try:
            paint()
        except Exception as exc:
            if self.error is None:
                self.error = exc
            if self.on_error is not None:
                self.on_error(exc)

    def _frame(self) -> None:
        self.dirty = True
        if self.on_frame is not None:
            self.on_frame(self)


# ── Verbose output ─────────────────────────────────────────────────────────


def print_overview(view: OverviewView) -> None:
    """Print the current sample to the terminal."""
    state = view.state
    ts = time.strftime("%H:%M:%S")
    lines = [f"\n── lbmon [{ts}] {view.node or '-'} ──"]

    lines.append(f"  {'CPU':12s}  {state.cpu_percent:.1f}%")
    lines.append(f"  {'Memory':12s}  {state.mem_percent:.1f}%")
    lines.append(f"  {'HTTP':12s}  {fmt_rate(state.http_request_rate)}")
    if state.history:
        lines.append(
            f"  {'History':12s}  {len(state.history)} samples, peak {fmt_rate(max(state.history))}"
        )

    ident = state.identity
    if ident is not None:
        lines.append(
            f"  {'Node':12s}  {ident.hostname or 'N/A'} ({ident.ip or 'N/A'})  "
            f"{ha_role_label(ident.ha_role)}  {ident.version or 'N/A'}"
        )
    for i, ha in enumerate(state.ha_nodes, start=1):
        lines.append(
            f"    {i}. {ha.ip or 'N/A':15s}  {ha.hostname or 'N/A':20s}  "
            f"{ha.state or 'Unknown':10s}  {ha.sync_status or 'N/A'}"
        )

    rss = psutil.Process().memory_info().rss
    lines.append(f"  {'Dashboard':12s}  {fmt_bytes(rss)} RSS")
    print("\n".join(lines))


def _sample_printer() -> Callable[[OverviewView], None]:
    """Frame callback that prints once per applied sample (not per resize)."""
    printed = 0

    def on_frame(view: OverviewView) -> None:
        nonlocal printed
        if view.samples_applied > printed:
            printed = view.samples_applied
            print_overview(view)

    return on_frame


# ── Window rendering ───────────────────────────────────────────────────────


def _window_size(layout: dict[str, Any]) -> tuple[int, int]:
    size = int(layout["gauge_size"])
    height = HEADER_H + size + LABEL_H + int(layout["trend_height"]) + LABEL_H + MARGIN
    return int(layout["window_width"]), height


def _blit_text(
    screen: pygame.Surface, font: pygame.font.Font, text: str, pos: tuple[int, int], color: str = C_TEXT
) -> None:
    screen.blit(font.render(text, True, parse_color(color)), pos)


def _compose(screen: pygame.Surface, view: OverviewView, font: pygame.font.Font) -> None:
    state = view.state
    width = screen.get_width()
    screen.fill(parse_color(C_WINDOW))

    # Header
    ident = state.identity
    title = f"lbmon  |  {view.node or '-'}"
    if ident is not None:
        title += f"  |  {ident.hostname or 'N/A'} ({ident.ip or 'N/A'})  {ha_role_label(ident.ha_role)}"
    _blit_text(screen, font, title, (MARGIN, 8))
    hint = "q quit  r refresh  n node"
    _blit_text(screen, font, hint, (width - font.size(hint)[0] - MARGIN, 8), C_DIM)

    # Gauges
    size = view.gauge_size
    y = HEADER_H
    for i, (canvas, label, value, key) in enumerate((
        (view.cpu_canvas, "CPU", state.cpu_percent, "cpu"),
        (view.mem_canvas, "Memory", state.mem_percent, "memory"),
    )):
        x = MARGIN + i * (size + MARGIN)
        screen.blit(canvas.surface, (x, y))
        _blit_text(screen, font, f"{label} {value:.1f}%", (x + 12, y + size + 4), view.colors[key])

    # HA pair
    ha_x = MARGIN + 2 * (size + MARGIN)
    _blit_text(screen, font, "High Availability", (ha_x, y + 4), C_DIM)
    if not state.ha_nodes:
        _blit_text(screen, font, "No HA nodes configured", (ha_x, y + 28), C_DIM)
    for i, ha in enumerate(state.ha_nodes):
        line = f"{i + 1}. {ha.ip or 'N/A'}  {ha.state or 'Unknown'}  {ha.sync_status or 'N/A'}"
        _blit_text(screen, font, line, (ha_x, y + 28 + i * 22))

    # Trend
    y += size + LABEL_H
    screen.blit(view.http_canvas.surface, (MARGIN, y))
    _blit_text(
        screen, font, f"HTTP {fmt_rate(state.http_request_rate)}",
        (MARGIN, y + view.trend_height + 4), view.colors["http"],
    )


def _next_node(nodes: tuple[str, ...], current: str | None) -> str:
    if current not in nodes:
        return nodes[0]
    return nodes[(nodes.index(current) + 1) % len(nodes)]


async def _window_loop(view: OverviewView, node: str, layout: dict[str, Any]) -> None:
    pygame.init()
    try:
        pygame.display.set_mode(_window_size(layout), pygame.RESIZABLE)
        pygame.display.set_caption("lbmon")
        font = pygame.font.Font(None, 22)
        view.mount(node)

        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return
                if event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_q, pygame.K_ESCAPE):
                        return
                    if event.key == pygame.K_r:
                        view.refresh()
                    elif event.key == pygame.K_n:
                        view.switch_node(_next_node(view.sampler.nodes, view.node))
                elif event.type == pygame.VIDEORESIZE:
                    view.viewport.notify(event.w - 2 * MARGIN)

            if view.error is not None:
                raise view.error
            if view.dirty:
                _compose(pygame.display.get_surface(), view, font)
                pygame.display.flip()
                view.dirty = False
            await asyncio.sleep(EVENT_POLL)
    finally:
        view.unmount()
        pygame.quit()


# ── Headless rendering ─────────────────────────────────────────────────────


def _terminal_width_px() -> int:
    return shutil.get_terminal_size().columns * CELL_PX


async def _headless_loop(
    view: OverviewView,
    node: str,
    out_dir: Path,
    frames: int,
    verbose: bool,
) -> None:
    """Render to PNG files until *frames* samples have been applied (0 = forever)."""
    out_dir.mkdir(parents=True, exist_ok=True)
    done = asyncio.Event()
    printer = _sample_printer()

    def on_frame(v: OverviewView) -> None:
        v.save(out_dir)
        if verbose:
            printer(v)
        if frames and v.samples_applied >= frames:
            done.set()

    view.on_frame = on_frame
    view.on_error = lambda exc: done.set()
    try:
        view.mount(node)
        await done.wait()
    finally:
        view.unmount()
    if view.error is not None:
        raise view.error


# ── Main loop ──────────────────────────────────────────────────────────────


def _make_source(config: dict[str, Any]) -> TelemetrySource:
    if config["demo"]:
        return DemoTelemetrySource()
    return ApplianceClient(config["base_url"], timeout=float(config["request_timeout"]))


async def _run(args: argparse.Namespace, config: dict[str, Any], node: str) -> None:
    layout = {**DEFAULT_CONFIG["layout"], **config.get("layout", {})}
    source = _make_source(config)
    sampler = Sampler(
        source,
        interval=float(config["poll_interval"]),
        nodes=config["nodes"],
        history_capacity=int(config["history_capacity"]),
    )
    try:
        if args.headless:
            viewport = ViewportTracker(_terminal_width_px)
            view = OverviewView(sampler, viewport, config.get("colors"), layout)
            await _headless_loop(view, node, args.out, args.frames, args.verbose)
        else:
            def measure() -> int:
                surface = pygame.display.get_surface()
                width = surface.get_width() if surface else int(layout["window_width"])
                return width - 2 * MARGIN

            viewport = ViewportTracker(measure, initial_width=int(layout["window_width"]) - 2 * MARGIN)
            view = OverviewView(sampler, viewport, config.get("colors"), layout)
            if args.verbose:
                view.on_frame = _sample_printer()
            await _window_loop(view, node, layout)
    finally:
        await sampler.close()
        await source.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Live overview dashboard for a load-balancing appliance.",
    )
    parser.add_argument("--node", default=None, help="Node to monitor (default: first configured node)")
    parser.add_argument(
        "--interval", type=float, default=None,
        help="Seconds between polls (default: 10)",
    )
    parser.add_argument(
        "--config", type=Path, default=None, metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument("--base-url", default=None, help="Dashboard API base URL")
    parser.add_argument("--demo", action="store_true", help="Use the built-in demo feed")
    parser.add_argument(
        "--headless", action="store_true",
        help="Write PNG frames instead of opening a window",
    )
    parser.add_argument(
        "--frames", type=int, default=0,
        help="Stop after this many samples in headless mode (default: run forever)",
    )
    parser.add_argument(
        "--out", type=Path, default=Path("lbmon-frames"), metavar="DIR",
        help="Output directory for headless frames (default: ./lbmon-frames)",
    )
    parser.add_argument("--verbose", action="store_true", help="Print metrics to terminal each sample")
    parser.add_argument("--log-file", default=None, metavar="PATH", help="Also log to this file")
    parser.add_argument(
        "--dump-config", action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    args = parser.parse_args()

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    config = load_config(args.config)
    if args.interval is not None:
        config["poll_interval"] = args.interval
    if args.base_url is not None:
        config["base_url"] = args.base_url
    if args.demo:
        config["demo"] = True

    nodes = list(config["nodes"])
    node = args.node or nodes[0]
    if node not in nodes:
        parser.error(f"unknown node {node!r} (configured: {', '.join(nodes)})")

    setup_logging("dashboard", config["log_level"], args.log_file)
    try:
        asyncio.run(_run(args, config, node))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
