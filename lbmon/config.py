"""Configuration loading for lbmon.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → $XDG_CONFIG_HOME/lbmon/config.toml →
~/.config/lbmon/config.toml → defaults only.
"""

from __future__ import annotations

import os
import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "base_url": "http://127.0.0.1:5000",
    "demo": False,
    "poll_interval": 10.0,
    "request_timeout": 10.0,
    "history_capacity": 20,
    "nodes": ["primary", "secondary"],
    "log_level": "INFO",
    "colors": {
        "cpu": "hsl(24, 95%, 53%)",
        "memory": "hsl(280, 65%, 60%)",
        "http": "hsl(217, 91%, 60%)",
        "background": "hsl(217, 33%, 17%)",
    },
    "layout": {
        "gauge_size": 140,
        "trend_height": 112,
        "window_width": 640,
    },
}

_DEFAULT_PATH = Path.home() / ".config" / "lbmon" / "config.toml"


def _search_paths() -> list[Path]:
    """Implicit config locations, most specific first."""
    paths = []
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.append(Path(xdg) / "lbmon" / "config.toml")
    if _DEFAULT_PATH not in paths:
        paths.append(_DEFAULT_PATH)
    return paths


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into a copy of base, one table level deep.

    Tables from base are copied, so the result never shares them with
    ``DEFAULT_CONFIG``.
    """
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in base.items()}
    for key, value in overlay.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _read_toml(path: Path) -> dict[str, Any]:
    return tomllib.loads(path.read_text(encoding="utf-8"))


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, the first
              existing file among ``$XDG_CONFIG_HOME/lbmon/config.toml`` and
              ``~/.config/lbmon/config.toml`` is used.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        if not path.is_file():
            print(f"lbmon: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            return _deep_merge(DEFAULT_CONFIG, _read_toml(path))
        except tomllib.TOMLDecodeError as e:
            print(f"lbmon: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e

    found = next((p for p in _search_paths() if p.is_file()), None)
    if found is not None:
        try:
            return _deep_merge(DEFAULT_CONFIG, _read_toml(found))
        except tomllib.TOMLDecodeError:
            print(f"lbmon: warning: ignoring invalid TOML in {found}", file=sys.stderr)

    return _deep_merge(DEFAULT_CONFIG, {})


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    return str(value)


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# lbmon configuration",
        "# Place this file at ~/.config/lbmon/config.toml",
        "",
    ]
    tables: list[str] = []
    for key, value in DEFAULT_CONFIG.items():
        if isinstance(value, dict):
            tables.append(key)
        else:
            lines.append(f"{key} = {_toml_value(value)}")
    lines.append("")

    for table in tables:
        lines.append(f"[{table}]")
        for key, value in DEFAULT_CONFIG[table].items():
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")

    return "\n".join(lines) + "\n"
