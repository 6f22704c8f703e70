"""Visible window, price range and time range derived from the viewport."""

from __future__ import annotations

import math
import time
from typing import Sequence

from candlechart.schemas.chart_state import (
    DAY_MS,
    ChartSettings,
    OHLCBar,
    PriceRange,
    TimeRange,
    ViewportState,
)

PRICE_PADDING = 0.1
MIN_SCALE = 0.1
MAX_SCALE = 10.0
ZOOM_OUT_FACTOR = 0.9
ZOOM_IN_FACTOR = 1.1


def calculate_visible_range(
    viewport: ViewportState,
    chart_width: float,
    candle_width: float,
    candle_spacing: float,
) -> tuple[int, int]:
    """Index window ``(start, end)`` centred on ``translate_x / slot``.

    ``start`` is never negative. When the left edge is clamped the window is
    shifted right so it still spans a full screen. ``end`` is not clamped to
    the data length; use :func:`intersect_with_data` for that.
    """
    slot = candle_width + candle_spacing
    if slot <= 0 or chart_width <= 0:
        return 0, 0

    candles_per_screen = math.ceil(chart_width / slot)
    center_index = viewport.translate_x / slot

    start_index = math.floor(center_index - candles_per_screen / 2)
    end_index = math.floor(center_index + candles_per_screen / 2)
    if start_index < 0:
        end_index -= start_index
        start_index = 0
    return start_index, end_index


def intersect_with_data(start_index: int, end_index: int, length: int) -> tuple[int, int]:
    if length <= 0:
        return 0, 0
    end_index = max(0, min(end_index, length - 1))
    start_index = max(0, min(start_index, end_index))
    return start_index, end_index


def calculate_price_range(bars: Sequence[OHLCBar], start_index: int, end_index: int) -> PriceRange:
    """Low/high envelope of the slice with 10% padding on each side."""
    visible = bars[max(0, start_index) : min(len(bars), end_index + 1)] if bars else ()
    if not visible:
        return PriceRange(min=0.0, max=100.0, range=100.0)

    low = min(bar.low for bar in visible)
    high = max(bar.high for bar in visible)
    padding = (high - low) * PRICE_PADDING
    low -= padding
    high += padding
    return PriceRange(min=low, max=high, range=high - low)


def calculate_time_range(
    bars: Sequence[OHLCBar],
    start_index: int,
    end_index: int,
    now_ms: int | None = None,
) -> TimeRange:
    if not bars:
        now = int(time.time() * 1000) if now_ms is None else now_ms
        return TimeRange(start=now - DAY_MS, end=now)

    first = bars[min(max(0, start_index), len(bars) - 1)]
    last = bars[min(len(bars) - 1, max(0, end_index))]
    return TimeRange(start=first.timestamp, end=last.timestamp)


def effective_candle_geometry(settings: ChartSettings, scale: float) -> tuple[float, float]:
    """Candle width and spacing after applying the zoom scale."""
    return settings.candle_width * scale, settings.candle_spacing * scale


def zoom_scale(scale: float, delta_y: float) -> float:
    """Next zoom scale for a wheel notch; scrolling down zooms out."""
    factor = ZOOM_OUT_FACTOR if delta_y > 0 else ZOOM_IN_FACTOR
    return max(MIN_SCALE, min(MAX_SCALE, scale * factor))


def clamp_translate_x(translate_x: float, length: int, chart_width: float, slot: float) -> float:
    """Keep the window centre between the first bar and the last half-screen."""
    if slot <= 0:
        return 0.0
    half_screen = math.ceil(chart_width / slot) / 2
    max_translate = max(0.0, (length - half_screen) * slot)
    return max(0.0, min(max_translate, translate_x))
