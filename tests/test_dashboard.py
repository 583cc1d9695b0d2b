"""Tests for the dashboard view binding, formatting helpers and CLI."""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from lbmon.api import DemoTelemetrySource
from lbmon.dashboard import (
    OverviewView,
    _headless_loop,
    _next_node,
    _sample_printer,
    _window_size,
    fmt_bytes,
    fmt_rate,
    main,
    print_overview,
)
from lbmon.poller import Sampler, SamplerState
from lbmon.telemetry import HANode, NodeIdentity
from lbmon.viewport import ViewportTracker

# ── fmt_bytes ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0.0 B"),
        (512, "512.0 B"),
        (1024, "1.0 KiB"),
        (1024 * 1024, "1.0 MiB"),
        (1024**3, "1.0 GiB"),
        (1024**4, "1.0 TiB"),
        (1536, "1.5 KiB"),
        (2.5 * 1024**2, "2.5 MiB"),
    ],
)
def test_fmt_bytes(value: int | float, expected: str) -> None:
    assert fmt_bytes(value) == expected


# ── fmt_rate ───────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("rate", "expected"),
    [
        (0, "0 req/s"),
        (1247, "1247 req/s"),
        (12.6, "13 req/s"),
    ],
)
def test_fmt_rate(rate: float, expected: str) -> None:
    assert fmt_rate(rate) == expected


# ── Small helpers ──────────────────────────────────────────────────────────


def test_next_node_cycles() -> None:
    nodes = ("primary", "secondary")
    assert _next_node(nodes, "primary") == "secondary"
    assert _next_node(nodes, "secondary") == "primary"
    assert _next_node(nodes, None) == "primary"


def test_window_size_fits_layout() -> None:
    width, height = _window_size({"gauge_size": 140, "trend_height": 112, "window_width": 640})
    assert width == 640
    assert height > 140 + 112


# ── OverviewView ───────────────────────────────────────────────────────────


def _view(interval: float = 60, width: int = 300) -> OverviewView:
    sampler = Sampler(DemoTelemetrySource(random.Random(0)), interval=interval)
    return OverviewView(sampler, ViewportTracker(lambda: width))


class TestOverviewView:
    @pytest.mark.asyncio
    async def test_mount_renders_first_sample(self) -> None:
        view = _view()
        view.mount("primary")
        assert view.mounted
        await view.sampler.wait_idle()

        assert view.samples_applied == 1
        assert 21.0 <= view.state.cpu_percent <= 26.0
        assert not view.cpu_canvas.is_blank()
        assert not view.mem_canvas.is_blank()
        # one sample is not enough for a line
        assert view.http_canvas.is_blank()
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_refresh_draws_trend(self) -> None:
        view = _view()
        view.mount("primary")
        await view.sampler.wait_idle()
        view.refresh()
        await view.sampler.wait_idle()

        assert view.samples_applied == 2
        assert len(view.state.history) == 2
        assert not view.http_canvas.is_blank()
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_resize_redraws_trend_at_new_width(self) -> None:
        view = _view()
        frames: list[int] = []
        view.on_frame = lambda v: frames.append(v.http_canvas.width)
        view.mount("primary")
        await view.sampler.wait_idle()

        view.viewport.notify(500)
        assert view.http_canvas.width == 500
        assert frames[-1] == 500
        assert view.dirty
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_switch_node(self) -> None:
        view = _view()
        view.mount("primary")
        await view.sampler.wait_idle()
        view.switch_node("secondary")
        await view.sampler.wait_idle()

        assert view.node == "secondary"
        assert view.state.identity is not None
        assert view.state.identity.hostname == "ns-secondary-01"
        assert len(view.state.history) == 1
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_mount_twice_rejected(self) -> None:
        view = _view()
        view.mount("primary")
        with pytest.raises(RuntimeError):
            view.mount("primary")
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_paint_error_in_sample_is_recorded(self) -> None:
        view = _view()
        errors: list[Exception] = []
        view.on_error = errors.append
        view.mount("primary")
        view.on_frame = MagicMock(side_effect=RuntimeError("blit failed"))
        await view.sampler.wait_idle()

        assert isinstance(view.error, RuntimeError)
        assert errors == [view.error]
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_paint_error_on_resize_is_recorded(self) -> None:
        view = _view()
        view.mount("primary")
        await view.sampler.wait_idle()
        view.on_frame = MagicMock(side_effect=RuntimeError("blit failed"))

        view.viewport.notify(500)
        assert isinstance(view.error, RuntimeError)
        view.unmount()
        await view.sampler.close()

    @pytest.mark.asyncio
    async def test_unmount_releases_everything(self) -> None:
        view = _view()
        view.mount("primary")
        await view.sampler.wait_idle()
        view.unmount()

        assert not view.mounted
        assert view.sampler.session is None
        assert not view.viewport.attached
        assert view.viewport.notify(480) is True
        assert view.http_canvas.width == 300  # no longer subscribed
        await view.sampler.close()


# ── Headless loop ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_headless_loop_writes_frames(tmp_path: Path) -> None:
    view = _view(interval=0.01)
    out = tmp_path / "frames"
    await asyncio.wait_for(_headless_loop(view, "primary", out, 3, False), timeout=5)
    await view.sampler.close()

    assert view.samples_applied >= 3
    assert not view.mounted
    for name in ("cpu.png", "memory.png", "http.png"):
        assert (out / name).stat().st_size > 0


@pytest.mark.asyncio
async def test_headless_loop_raises_when_frame_write_fails(tmp_path: Path) -> None:
    view = _view(interval=0.01)
    failure = OSError("No space left on device")
    with patch.object(view, "save", side_effect=[None, failure]):
        with pytest.raises(OSError, match="No space left"):
            await asyncio.wait_for(_headless_loop(view, "primary", tmp_path, 5, False), timeout=5)
    await view.sampler.close()

    assert view.error is failure
    assert not view.mounted


@pytest.mark.asyncio
async def test_first_paint_error_raised_from_mount(tmp_path: Path) -> None:
    view = _view()
    with patch.object(view, "save", side_effect=OSError("read-only file system")):
        with pytest.raises(OSError):
            await asyncio.wait_for(_headless_loop(view, "primary", tmp_path, 1, False), timeout=5)
    await view.sampler.close()
    assert not view.mounted


# ── Verbose output ─────────────────────────────────────────────────────────


def _populated_view() -> OverviewView:
    view = _view()
    view.sampler.state = SamplerState(
        cpu_percent=23.5,
        mem_percent=45.2,
        http_request_rate=1247.0,
        history=(1100.0, 1247.0),
        identity=NodeIdentity("10.0.0.100", "ns-primary-01", "14.1", "PRIMARY"),
        ha_nodes=(HANode("10.0.0.100", "ns-primary-01", "PRIMARY", "SUCCESS"),),
    )
    return view


@patch("lbmon.dashboard.psutil")
def test_print_overview(mock_psutil: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
    mock_psutil.Process.return_value.memory_info.return_value.rss = 1024 * 1024
    print_overview(_populated_view())
    out = capsys.readouterr().out

    assert "23.5%" in out
    assert "45.2%" in out
    assert "1247 req/s" in out
    assert "2 samples" in out
    assert "ns-primary-01 (10.0.0.100)" in out
    assert "SUCCESS" in out
    assert "1.0 MiB RSS" in out


@patch("lbmon.dashboard.print_overview")
def test_sample_printer_once_per_sample(mock_print: MagicMock) -> None:
    view = _populated_view()
    printer = _sample_printer()

    printer(view)  # initial paint, nothing applied yet
    view.samples_applied = 1
    printer(view)
    printer(view)  # resize frame, same sample
    assert mock_print.call_count == 1


# ── CLI ────────────────────────────────────────────────────────────────────


def test_main_dump_config(capsys: pytest.CaptureFixture[str]) -> None:
    with patch("sys.argv", ["lbmon-dashboard", "--dump-config"]):
        main()
    out = capsys.readouterr().out
    assert "poll_interval = 10.0" in out
    assert "[colors]" in out


def test_main_rejects_unknown_node() -> None:
    with (
        patch("sys.argv", ["lbmon-dashboard", "--demo", "--node", "tertiary"]),
        patch("lbmon.dashboard.load_config", return_value={
            "nodes": ["primary", "secondary"], "poll_interval": 10.0, "base_url": "", "demo": False,
        }),
        pytest.raises(SystemExit),
    ):
        main()
