"""Filled trend-line renderer for the live HTTP request rate.

The vertical axis is not persisted: every draw rescales to the largest sample
currently in the window (never below 1), so older peaks flatten out as larger
ones arrive.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from lbmon.canvas import Canvas, ColorLike, Glow, Point, with_alpha

DEFAULT_COLOR = "hsl(217, 91%, 60%)"

PADDING = 10
LINE_WIDTH = 2
GLOW_BLUR = 8
FILL_TOP_ALPHA = 0.3
FILL_BOTTOM_ALPHA = 0.02


@dataclass(frozen=True)
class TrendSpec:
    samples: Sequence[float]
    color: ColorLike = DEFAULT_COLOR
    width: int = 300
    height: int = 112


def local_max(samples: Sequence[float]) -> float:
    return max([*samples, 1.0])


def trend_points(
    samples: Sequence[float],
    width: float,
    height: float,
    padding: float = PADDING,
) -> list[Point]:
    """Map samples to pixel coordinates; empty when there is no line to draw."""
    count = len(samples)
    if count < 2:
        return []
    chart_w = width - 2 * padding
    chart_h = height - 2 * padding
    scale = local_max(samples)
    spacing = chart_w / (count - 1)
    return [
        (padding + i * spacing, height - padding - (value / scale) * chart_h)
        for i, value in enumerate(samples)
    ]


def render(canvas: Canvas, spec: TrendSpec) -> list[Point]:
    """Repaint *canvas* with the trend line and return the plotted points."""
    canvas.resize(spec.width, spec.height)
    canvas.clear()

    if spec.width <= 2 * PADDING or spec.height <= 2 * PADDING:
        return []
    points = trend_points(spec.samples, spec.width, spec.height)
    if not points:
        return []

    # Area under the curve
    baseline = spec.height - PADDING
    area = [(points[0][0], baseline), *points, (points[-1][0], baseline)]
    canvas.fill_polygon_gradient(
        area,
        with_alpha(spec.color, FILL_TOP_ALPHA),
        with_alpha(spec.color, FILL_BOTTOM_ALPHA),
    )

    # Line, then the same line again with a glow underneath
    canvas.stroke_polyline(points, spec.color, LINE_WIDTH)
    canvas.glow = Glow(spec.color, GLOW_BLUR)
    try:
        canvas.stroke_polyline(points, spec.color, LINE_WIDTH)
    finally:
        canvas.glow = None
    return points
