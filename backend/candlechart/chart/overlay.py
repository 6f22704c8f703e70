"""Crosshair layer, drawn on its own transparent surface."""

from __future__ import annotations

from candlechart.schemas.chart_state import ChartState

from .labels import format_price, format_timestamp
from .renderer import THEMES
from .surface import Surface

CROSSHAIR_DASH = (5, 5)
LABEL_HEIGHT = 20
LABEL_PADDING = 5


class CrosshairRenderer:
    def render(self, state: ChartState, surface: Surface) -> None:
        surface.clear()
        crosshair = state.crosshair
        if not crosshair.visible:
            return

        colors = THEMES[state.settings.theme]
        dims = state.dimensions

        surface.line(
            crosshair.x, dims.margin_top, crosshair.x, dims.margin_top + dims.chart_height,
            colors.crosshair, dash=CROSSHAIR_DASH,
        )
        surface.line(
            dims.margin_left, crosshair.y, dims.margin_left + dims.chart_width, crosshair.y,
            colors.crosshair, dash=CROSSHAIR_DASH,
        )

        price_text = format_price(crosshair.price)
        self._boxed_label(
            surface,
            dims.width - 60,
            crosshair.y - LABEL_HEIGHT / 2,
            price_text,
            colors.label_background,
            colors.crosshair,
            colors.text,
        )

        time_text = format_timestamp(crosshair.timestamp, state.time_frame)
        time_width = surface.measure_text(time_text)
        self._boxed_label(
            surface,
            crosshair.x - time_width / 2 - LABEL_PADDING,
            dims.height - 30,
            time_text,
            colors.label_background,
            colors.crosshair,
            colors.text,
        )

    @staticmethod
    def _boxed_label(
        surface: Surface,
        x: float,
        y: float,
        text: str,
        fill: str,
        border: str,
        color: str,
    ) -> None:
        width = surface.measure_text(text) + LABEL_PADDING * 2
        surface.fill_rect(x, y, width, LABEL_HEIGHT, fill)
        surface.stroke_rect(x, y, width, LABEL_HEIGHT, border)
        surface.text(x + LABEL_PADDING, y + 14, text, color)
