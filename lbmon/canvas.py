"""Off-screen pixel surfaces for the live-metric renderers.

A ``Canvas`` wraps a transparent ``pygame.Surface`` and offers the handful of
primitives the gauge and trend renderers need: thick arcs with round caps,
polylines with round joins, polygons filled with a vertical gradient, and an
optional glow that is applied to strokes while it is set.

Colours may be given the way the appliance UI spells them (``hsl(24, 95%, 53%)``),
as ``#rrggbb`` strings, pygame colour names or RGB(A) tuples.
"""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence, Union

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

ColorLike = Union[str, tuple[int, ...], pygame.Color]
Point = tuple[float, float]

_HSL_RE = re.compile(
    r"hsla?\(\s*([\d.]+)\s*,\s*([\d.]+)%\s*,\s*([\d.]+)%\s*(?:,\s*([\d.]+)\s*)?\)"
)

# Arc tessellation: roughly one vertex every 2px of arc length
_ARC_STEP_PX = 2.0


# ── Colour helpers ─────────────────────────────────────────────────────────


def parse_color(value: ColorLike) -> pygame.Color:
    """Convert any supported colour spelling into a ``pygame.Color``."""
    if isinstance(value, str):
        m = _HSL_RE.fullmatch(value.strip())
        if m:
            hue, sat, light = (float(g) for g in m.groups()[:3])
            alpha = float(m.group(4)) if m.group(4) is not None else 1.0
            color = pygame.Color(0, 0, 0)
            color.hsla = (
                hue % 360.0,
                min(sat, 100.0),
                min(light, 100.0),
                min(alpha, 1.0) * 100.0,
            )
            return color
    return pygame.Color(value)


def with_alpha(value: ColorLike, alpha: float) -> pygame.Color:
    """Return *value* with its opacity replaced by *alpha* (0.0–1.0)."""
    color = parse_color(value)
    color.a = int(round(min(max(alpha, 0.0), 1.0) * 255))
    return color


# ── Geometry helpers ───────────────────────────────────────────────────────


def arc_points(center: Point, radius: float, start: float, end: float) -> list[Point]:
    """Points along a circular arc, clockwise on screen (y grows downwards)."""
    cx, cy = center
    span = end - start
    steps = max(2, int(abs(span) * max(radius, 1.0) / _ARC_STEP_PX) + 2)
    return [
        (
            cx + radius * math.cos(start + span * i / (steps - 1)),
            cy + radius * math.sin(start + span * i / (steps - 1)),
        )
        for i in range(steps)
    ]


@dataclass(frozen=True)
class Glow:
    """Soft halo drawn beneath strokes, like a 2D-canvas shadow with no offset."""

    color: ColorLike
    blur: float


# ── Canvas ─────────────────────────────────────────────────────────────────


class Canvas:
    """A transparent pixel surface owned by exactly one renderer."""

    def __init__(self, width: int, height: int) -> None:
        self.surface = pygame.Surface((max(1, width), max(1, height)), pygame.SRCALPHA)
        self.glow: Glow | None = None

    @property
    def width(self) -> int:
        return self.surface.get_width()

    @property
    def height(self) -> int:
        return self.surface.get_height()

    def resize(self, width: int, height: int) -> None:
        """Reallocate the surface if its size changed. Pixels are not kept."""
        size = (max(1, int(width)), max(1, int(height)))
        if size != self.surface.get_size():
            self.surface = pygame.Surface(size, pygame.SRCALPHA)

    def clear(self) -> None:
        self.surface.fill((0, 0, 0, 0))

    def is_blank(self) -> bool:
        return self.surface.get_bounding_rect().width == 0

    def save(self, path: Path | str) -> None:
        pygame.image.save(self.surface, str(path))

    # ── Primitives ──────────────────────────────────────────────────────

    def stroke_arc(
        self,
        center: Point,
        radius: float,
        start: float,
        end: float,
        color: ColorLike,
        width: float,
    ) -> None:
        """Stroke an arc from *start* to *end* radians with round caps."""
        if end <= start or radius <= 0:
            return
        half = width / 2.0
        outer = arc_points(center, radius + half, start, end)
        inner = arc_points(center, max(radius - half, 0.0), start, end)
        band = outer + inner[::-1]
        centerline = arc_points(center, radius, start, end)
        caps = (centerline[0], centerline[-1])

        def draw(target: pygame.Surface, paint: pygame.Color) -> None:
            pygame.draw.polygon(target, paint, band)
            for cap in caps:
                pygame.draw.circle(target, paint, cap, half)

        self._stroke(draw, parse_color(color))

    def stroke_polyline(self, points: Sequence[Point], color: ColorLike, width: float) -> None:
        """Stroke an open path with round joins and caps."""
        if len(points) < 2:
            return
        half = width / 2.0

        def draw(target: pygame.Surface, paint: pygame.Color) -> None:
            pygame.draw.lines(target, paint, False, list(points), max(1, int(round(width))))
            for point in points:
                pygame.draw.circle(target, paint, point, half)

        self._stroke(draw, parse_color(color))

    def fill_polygon_gradient(
        self,
        points: Sequence[Point],
        top: pygame.Color,
        bottom: pygame.Color,
    ) -> None:
        """Fill a closed polygon with a vertical gradient spanning the canvas height."""
        if len(points) < 3:
            return
        w, h = self.surface.get_size()
        gradient = pygame.Surface((w, h), pygame.SRCALPHA)
        for y in range(h):
            t = y / (h - 1) if h > 1 else 0.0
            gradient.fill(top.lerp(bottom, t), pygame.Rect(0, y, w, 1))

        mask = pygame.Surface((w, h), pygame.SRCALPHA)
        pygame.draw.polygon(mask, (255, 255, 255, 255), list(points))
        gradient.blit(mask, (0, 0), special_flags=pygame.BLEND_RGBA_MULT)
        self.surface.blit(gradient, (0, 0))

    # ── Internals ───────────────────────────────────────────────────────

    def _stroke(
        self,
        draw: Callable[[pygame.Surface, pygame.Color], None],
        paint: pygame.Color,
    ) -> None:
        if self.glow is not None and self.glow.blur > 0:
            halo = pygame.Surface(self.surface.get_size(), pygame.SRCALPHA)
            draw(halo, parse_color(self.glow.color))
            self.surface.blit(_blur(halo, self.glow.blur), (0, 0))
        draw(self.surface, paint)


def _blur(layer: pygame.Surface, radius: float) -> pygame.Surface:
    """Cheap blur: shrink by the blur radius, then scale back up smoothly."""
    w, h = layer.get_size()
    factor = max(2, int(round(radius / 2)))
    small = pygame.transform.smoothscale(layer, (max(1, w // factor), max(1, h // factor)))
    return pygame.transform.smoothscale(small, (w, h))
