"""Radial gauge renderer (CPU / memory usage)."""

from __future__ import annotations

import math
from dataclasses import dataclass

from lbmon.canvas import Canvas, ColorLike, Glow

DEFAULT_COLOR = "hsl(24, 95%, 53%)"
DEFAULT_BACKGROUND = "hsl(217, 33%, 17%)"

START_ANGLE = 0.75 * math.pi
SWEEP = 1.5 * math.pi  # 270°, opening at the bottom
LINE_WIDTH = 12
GLOW_WIDTH = 2
GLOW_BLUR = 10
RIM = 15  # distance from the surface edge to the arc centreline


@dataclass(frozen=True)
class GaugeSpec:
    value: float
    max: float = 100.0
    color: ColorLike = DEFAULT_COLOR
    background_color: ColorLike = DEFAULT_BACKGROUND
    size: int = 140


@dataclass(frozen=True)
class GaugeGeometry:
    """What one ``render`` call actually drew."""

    center: tuple[float, float]
    radius: float
    fraction: float
    start_angle: float
    end_angle: float

    @property
    def sweep(self) -> float:
        return self.end_angle - self.start_angle


def gauge_fraction(value: float, maximum: float) -> float:
    """Share of the arc to fill, clamped to [0, 1].

    A non-positive (or NaN) maximum yields an empty gauge rather than a
    division error, and so does an undefined ratio such as inf/inf.
    """
    if not maximum > 0:
        return 0.0
    ratio = value / maximum
    if math.isnan(ratio):
        return 0.0
    return min(max(ratio, 0.0), 1.0)


def gauge_geometry(spec: GaugeSpec) -> GaugeGeometry:
    fraction = gauge_fraction(spec.value, spec.max)
    half = spec.size / 2
    return GaugeGeometry(
        center=(half, half),
        radius=max(half - RIM, 0.0),
        fraction=fraction,
        start_angle=START_ANGLE,
        end_angle=START_ANGLE + fraction * SWEEP,
    )


def render(canvas: Canvas, spec: GaugeSpec) -> GaugeGeometry:
    """Repaint *canvas* with the gauge described by *spec*."""
    geo = gauge_geometry(spec)
    canvas.resize(spec.size, spec.size)
    canvas.clear()

    # Track
    canvas.stroke_arc(
        geo.center, geo.radius, START_ANGLE, START_ANGLE + SWEEP,
        spec.background_color, LINE_WIDTH,
    )
    # Value
    canvas.stroke_arc(
        geo.center, geo.radius, geo.start_angle, geo.end_angle,
        spec.color, LINE_WIDTH,
    )
    # Glow highlight on the value arc
    canvas.glow = Glow(spec.color, GLOW_BLUR)
    try:
        canvas.stroke_arc(
            geo.center, geo.radius, geo.start_angle, geo.end_angle,
            spec.color, GLOW_WIDTH,
        )
    finally:
        canvas.glow = None
    return geo
