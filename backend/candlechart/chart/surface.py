"""Raster drawing surface backed by a Pillow image.

Callers draw in logical (CSS-like) pixels; the surface multiplies every
coordinate by the device pixel ratio so the backing image is sharp on
high-density displays.
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable, Literal, Sequence

from PIL import Image, ImageColor, ImageDraw, ImageFont

Align = Literal["left", "center", "right"]

FONT_SIZE = 12


@lru_cache(maxsize=16)
def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def backing_size(width: float, height: float, device_pixel_ratio: float) -> tuple[int, int]:
    return max(1, round(width * device_pixel_ratio)), max(1, round(height * device_pixel_ratio))


class Surface:
    def __init__(
        self,
        width: float,
        height: float,
        device_pixel_ratio: float = 1.0,
        *,
        transparent: bool = False,
    ) -> None:
        self.transparent = transparent
        self.width = width
        self.height = height
        self.device_pixel_ratio = device_pixel_ratio
        self.image = self._new_image()
        self._draw = self._new_draw()

    def _new_image(self) -> Image.Image:
        size = backing_size(self.width, self.height, self.device_pixel_ratio)
        if self.transparent:
            return Image.new("RGBA", size, (0, 0, 0, 0))
        return Image.new("RGB", size, (0, 0, 0))

    def _new_draw(self) -> ImageDraw.ImageDraw:
        # RGBA ink on an RGB image blends translucent fills onto the base layer.
        return ImageDraw.Draw(self.image) if self.transparent else ImageDraw.Draw(self.image, "RGBA")

    @property
    def font(self) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        return _font(max(1, round(FONT_SIZE * self.device_pixel_ratio)))

    def _s(self, value: float) -> float:
        return value * self.device_pixel_ratio

    def resize(self, width: float, height: float, device_pixel_ratio: float | None = None) -> None:
        """Reallocate the backing image; previous contents are discarded."""
        self.width = width
        self.height = height
        if device_pixel_ratio is not None:
            self.device_pixel_ratio = device_pixel_ratio
        self.image = self._new_image()
        self._draw = self._new_draw()

    # -------------------------
    # Primitives
    # -------------------------

    def clear(self, color: str | None = None) -> None:
        if color is None:
            fill: int | tuple[int, ...] = (0, 0, 0, 0) if self.transparent else (0, 0, 0)
        else:
            fill = ImageColor.getcolor(color, self.image.mode)
        self.image.paste(fill, (0, 0, self.image.width, self.image.height))

    def fill_rect(self, x: float, y: float, w: float, h: float, color: str) -> None:
        box = self._box(x, y, w, h)
        if box is not None:
            self._draw.rectangle(box, fill=color)

    def stroke_rect(self, x: float, y: float, w: float, h: float, color: str, width: float = 1) -> None:
        box = self._box(x, y, w, h)
        if box is not None:
            self._draw.rectangle(box, outline=color, width=self._line_width(width))

    def line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        color: str,
        width: float = 1,
        dash: Sequence[float] | None = None,
    ) -> None:
        if dash:
            for seg in _dash_segments(x0, y0, x1, y1, dash):
                self._draw.line([self._pt(*seg[0]), self._pt(*seg[1])], fill=color, width=self._line_width(width))
            return
        self._draw.line([self._pt(x0, y0), self._pt(x1, y1)], fill=color, width=self._line_width(width))

    def polyline(self, points: Iterable[tuple[float, float]], color: str, width: float = 1) -> None:
        scaled = [self._pt(x, y) for x, y in points]
        if len(scaled) < 2:
            return
        self._draw.line(scaled, fill=color, width=self._line_width(width), joint="curve")

    def measure_text(self, text: str) -> float:
        return self._draw.textlength(text, font=self.font) / self.device_pixel_ratio

    def text(self, x: float, y: float, text: str, color: str, align: Align = "left") -> None:
        """Draw *text* with its baseline at *y*."""
        anchor = {"left": "ls", "center": "ms", "right": "rs"}[align]
        self._draw.text(self._pt(x, y), text, fill=color, font=self.font, anchor=anchor)

    # -------------------------
    # Output
    # -------------------------

    def to_bytes(self) -> bytes:
        return self.image.tobytes()

    # -------------------------
    # Internals
    # -------------------------

    def _pt(self, x: float, y: float) -> tuple[float, float]:
        return self._s(x), self._s(y)

    def _line_width(self, width: float) -> int:
        return max(1, round(self._s(width)))

    def _box(self, x: float, y: float, w: float, h: float) -> tuple[float, float, float, float] | None:
        if w <= 0 or h <= 0:
            return None
        x0, y0 = self._pt(x, y)
        x1, y1 = self._pt(x + w, y + h)
        return x0, y0, max(x0, x1 - 1), max(y0, y1 - 1)


def compose(base: Surface, overlay: Surface) -> Image.Image:
    """Stack the overlay on top of the base layer."""
    out = base.image.convert("RGBA")
    if overlay.image.size != out.size:
        return out
    out.alpha_composite(overlay.image)
    return out


def _dash_segments(
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    dash: Sequence[float],
) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    length = math.hypot(x1 - x0, y1 - y0)
    if length == 0:
        return []
    ux, uy = (x1 - x0) / length, (y1 - y0) / length

    segments: list[tuple[tuple[float, float], tuple[float, float]]] = []
    pos = 0.0
    i = 0
    while pos < length:
        step = dash[i % len(dash)]
        end = min(length, pos + step)
        if i % 2 == 0 and step > 0:
            segments.append(((x0 + ux * pos, y0 + uy * pos), (x0 + ux * end, y0 + uy * end)))
        pos = end if step > 0 else length
        i += 1
    return segments
