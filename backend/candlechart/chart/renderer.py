"""Base-layer renderer: background, grid, candles, volume, indicators and axes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from candlechart.quant import series_for
from candlechart.schemas.chart_state import ChartState, OHLCBar, PriceRange, TechnicalIndicator

from .coords import index_to_x, price_to_y
from .labels import generate_price_labels, generate_time_labels
from .surface import Surface
from .viewport import effective_candle_geometry

logger = logging.getLogger(__name__)

# Candle bodies use one fixed palette regardless of theme.
UP_COLOR = "#00C851"
DOWN_COLOR = "#ff4444"

RSI_RANGE = PriceRange(min=0.0, max=100.0, range=100.0)
VOLUME_PANE_RATIO = 0.2
INDICATOR_LINE_WIDTH = 2


@dataclass(frozen=True)
class ThemeColors:
    background: str
    wick: str
    grid: str
    text: str
    crosshair: str
    label_background: str


THEMES: dict[str, ThemeColors] = {
    "light": ThemeColors(
        background="#ffffff",
        wick="#666666",
        grid="#e0e0e0",
        text="#333333",
        crosshair="#666666",
        label_background="#ffffff",
    ),
    "dark": ThemeColors(
        background="#1a1a1a",
        wick="#888888",
        grid="#444444",
        text="#ffffff",
        crosshair="#888888",
        label_background="#333333",
    ),
}


class ChartRenderer:
    """Paints one base frame from a read-only :class:`ChartState` snapshot."""

    def render(self, state: ChartState, surface: Surface) -> None:
        colors = THEMES[state.settings.theme]
        surface.clear(colors.background)

        visible = state.visible_bars()
        if not visible:
            logger.debug("render skipped: no visible bars for %s", state.symbol or "<empty>")
            return

        if state.settings.grid_lines:
            self._draw_grid(state, surface, colors)

        candle_width, candle_spacing = effective_candle_geometry(state.settings, state.viewport.scale)
        dims = state.dimensions

        if state.settings.show_volume:
            self._draw_volume(state, surface, visible, candle_width, candle_spacing)

        for offset, bar in enumerate(visible):
            x = index_to_x(offset, candle_width, candle_spacing, dims.margin_left)
            self._draw_candle(surface, bar, x, state.price_range, candle_width, dims.chart_height, dims.margin_top, colors)

        for indicator in state.indicators:
            if indicator.visible:
                self._draw_indicator(state, surface, indicator, candle_width, candle_spacing)

        self._draw_axes(state, surface, colors)

    # -------------------------
    # Layers
    # -------------------------

    def _draw_grid(self, state: ChartState, surface: Surface, colors: ThemeColors) -> None:
        dims = state.dimensions
        left = dims.margin_left
        right = dims.margin_left + dims.chart_width
        top = dims.margin_top
        bottom = dims.margin_top + dims.chart_height

        for label in generate_price_labels(state.price_range, dims.chart_height):
            y = top + label.y
            surface.line(left, y, right, y, colors.grid)

        for label in generate_time_labels(state.time_range, dims.chart_width):
            x = left + label.x
            surface.line(x, top, x, bottom, colors.grid)

    def _draw_candle(
        self,
        surface: Surface,
        bar: OHLCBar,
        x: float,
        price_range: PriceRange,
        candle_width: float,
        chart_height: float,
        margin_top: float,
        colors: ThemeColors,
    ) -> None:
        open_y = price_to_y(bar.open, price_range, chart_height, margin_top)
        close_y = price_to_y(bar.close, price_range, chart_height, margin_top)
        high_y = price_to_y(bar.high, price_range, chart_height, margin_top)
        low_y = price_to_y(bar.low, price_range, chart_height, margin_top)

        body_color = UP_COLOR if bar.close > bar.open else DOWN_COLOR
        body_top = min(open_y, close_y)
        body_height = abs(close_y - open_y)
        left = x - candle_width / 2

        surface.line(x, high_y, x, low_y, colors.wick)

        if body_height <= 1:
            surface.line(left, body_top, left + candle_width, body_top, body_color)
            return
        surface.fill_rect(left, body_top, candle_width, body_height, body_color)

    def _draw_volume(
        self,
        state: ChartState,
        surface: Surface,
        visible: tuple[OHLCBar, ...],
        candle_width: float,
        candle_spacing: float,
    ) -> None:
        max_volume = max(bar.volume for bar in visible)
        if max_volume <= 0:
            return

        dims = state.dimensions
        pane_height = dims.chart_height * VOLUME_PANE_RATIO
        bottom = dims.margin_top + dims.chart_height
        for offset, bar in enumerate(visible):
            height = pane_height * bar.volume / max_volume
            x = index_to_x(offset, candle_width, candle_spacing, dims.margin_left)
            color = (UP_COLOR if bar.close > bar.open else DOWN_COLOR) + "55"
            surface.fill_rect(x - candle_width / 2, bottom - height, candle_width, height, color)

    def _draw_indicator(
        self,
        state: ChartState,
        surface: Surface,
        indicator: TechnicalIndicator,
        candle_width: float,
        candle_spacing: float,
    ) -> None:
        dims = state.dimensions
        price_range = RSI_RANGE if indicator.type == "RSI" else state.price_range
        start = state.viewport.start_index
        end = min(state.viewport.end_index, len(state.bars) - 1)

        # Computed over the whole series so the window sees real history.
        for values in series_for(indicator, state.bars).values():
            points: list[tuple[float, float]] = []
            for i in range(start, end + 1):
                value = values[i]
                if value is None:
                    continue
                x = index_to_x(i - start, candle_width, candle_spacing, dims.margin_left)
                y = price_to_y(value, price_range, dims.chart_height, dims.margin_top)
                points.append((x, y))
            surface.polyline(points, indicator.color, width=INDICATOR_LINE_WIDTH)

    def _draw_axes(self, state: ChartState, surface: Surface, colors: ThemeColors) -> None:
        dims = state.dimensions
        for label in generate_price_labels(state.price_range, dims.chart_height):
            surface.text(dims.width - 5, dims.margin_top + label.y + 4, label.label, colors.text, align="right")

        for label in generate_time_labels(state.time_range, dims.chart_width):
            surface.text(dims.margin_left + label.x, dims.height - 5, label.label, colors.text, align="center")
