"""
Draw pixel-art cells as enlarged blocks with a faint grid outline.

render_cells only talks to a drawing surface through four calls
(set_fill_color, fill_rect, set_stroke, stroke_rect). Colors are
(r, g, b, alpha) with 8-bit channels and alpha as opacity in [0, 1], the same
contract as a CSS rgba() string.
"""

import math
from typing import Protocol

import numpy as np
from PIL import Image, ImageDraw

from .config import BLOCK_SIZE

RGBA = tuple[int, int, int, float]

GRID_COLOR: RGBA = (0, 0, 0, 0.08)
GRID_LINE_WIDTH = 0.5


def _fmt(value: float) -> str:
    return f"{value:.10g}"


def css_rgba(color: RGBA) -> str:
    """Format a surface color as rgba(r, g, b, a)."""
    r, g, b, a = color
    return f"rgba({int(r)}, {int(g)}, {int(b)}, {_fmt(a)})"


class DrawingSurface(Protocol):
    def set_fill_color(self, color: RGBA) -> None: ...

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None: ...

    def set_stroke(self, color: RGBA, width: float) -> None: ...

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None: ...


def render_cells(cells: np.ndarray, surface: DrawingSurface, block_size: int = BLOCK_SIZE) -> None:
    """
    Paint every cell as a block_size x block_size square, row by row.

    Each block is outlined with a thin grid line drawn just inside its edge.
    """
    if block_size < 1:
        raise ValueError(f"block_size must be at least 1, got {block_size}")

    inset = GRID_LINE_WIDTH / 2
    for y, row in enumerate(np.asarray(cells).tolist()):
        for x, (r, g, b, a) in enumerate(row):
            left = x * block_size
            top = y * block_size

            surface.set_fill_color((r, g, b, a / 255))
            surface.fill_rect(left, top, block_size, block_size)

            surface.set_stroke(GRID_COLOR, GRID_LINE_WIDTH)
            surface.stroke_rect(
                left + inset,
                top + inset,
                block_size - GRID_LINE_WIDTH,
                block_size - GRID_LINE_WIDTH,
            )


def _to_rgba8(color: RGBA) -> tuple[int, int, int, int]:
    r, g, b, a = color
    alpha = int(round(min(1.0, max(0.0, float(a))) * 255))
    return (int(r), int(g), int(b), alpha)


class PillowSurface:
    """
    Drawing surface backed by a Pillow RGBA image.

    Fills replace the pixels underneath. Strokes go to a separate layer
    that is alpha-composited over the fills by to_image().
    """

    def __init__(self, width: int, height: int):
        self.size = (width, height)
        self._canvas = Image.new("RGBA", self.size, (0, 0, 0, 0))
        self._strokes = Image.new("RGBA", self.size, (0, 0, 0, 0))
        self._fill_draw = ImageDraw.Draw(self._canvas)
        self._stroke_draw = ImageDraw.Draw(self._strokes)
        self._fill = (0, 0, 0, 255)
        self._stroke = (0, 0, 0, 255)
        self._line_width = 1.0

    def set_fill_color(self, color: RGBA) -> None:
        self._fill = _to_rgba8(color)

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None:
        left, top = int(x), int(y)
        right = int(math.ceil(x + width)) - 1
        bottom = int(math.ceil(y + height)) - 1
        self._fill_draw.rectangle([left, top, right, bottom], fill=self._fill)

    def set_stroke(self, color: RGBA, width: float) -> None:
        self._stroke = _to_rgba8(color)
        self._line_width = width

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None:
        # Sub-pixel lines snap outward to whole pixels, at least 1px wide.
        left, top = int(math.floor(x)), int(math.floor(y))
        right = int(math.ceil(x + width)) - 1
        bottom = int(math.ceil(y + height)) - 1
        line = max(1, int(round(self._line_width)))
        self._stroke_draw.rectangle([left, top, right, bottom], outline=self._stroke, width=line)

    def to_image(self) -> Image.Image:
        return Image.alpha_composite(self._canvas, self._strokes)


class SvgSurface:
    """Drawing surface that records <rect> elements for an SVG document."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.elements: list[str] = []
        self._fill = "rgba(0, 0, 0, 1)"
        self._stroke = "rgba(0, 0, 0, 1)"
        self._line_width = 1.0

    def set_fill_color(self, color: RGBA) -> None:
        self._fill = css_rgba(color)

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.elements.append(
            f'<rect x="{_fmt(x)}" y="{_fmt(y)}" width="{_fmt(width)}" height="{_fmt(height)}" '
            f'fill="{self._fill}"/>'
        )

    def set_stroke(self, color: RGBA, width: float) -> None:
        self._stroke = css_rgba(color)
        self._line_width = width

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.elements.append(
            f'<rect x="{_fmt(x)}" y="{_fmt(y)}" width="{_fmt(width)}" height="{_fmt(height)}" '
            f'fill="none" stroke="{self._stroke}" stroke-width="{_fmt(self._line_width)}"/>'
        )

    def to_svg(self) -> str:
        header = (
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" height="{self.height}" '
            f'viewBox="0 0 {self.width} {self.height}">'
        )
        return "\n".join([header, *self.elements, "</svg>"]) + "\n"
