"""Conversions between price/time/index space and pixel space."""

from __future__ import annotations

import math

from candlechart.schemas.chart_state import PriceRange, TimeRange

# Smallest price or time span used as a divisor.
MIN_SPAN = 1e-9


def _span(value: float) -> float:
    return value if value > MIN_SPAN else MIN_SPAN


def price_to_y(price: float, price_range: PriceRange, chart_height: float, margin_top: float) -> float:
    ratio = (price_range.max - price) / _span(price_range.range)
    return margin_top + ratio * chart_height


def y_to_price(y: float, price_range: PriceRange, chart_height: float, margin_top: float) -> float:
    ratio = (y - margin_top) / _span(chart_height)
    return price_range.max - ratio * _span(price_range.range)


def timestamp_to_x(timestamp: float, time_range: TimeRange, chart_width: float, margin_left: float) -> float:
    ratio = (timestamp - time_range.start) / _span(time_range.end - time_range.start)
    return margin_left + ratio * chart_width


def x_to_timestamp(x: float, time_range: TimeRange, chart_width: float, margin_left: float) -> float:
    ratio = (x - margin_left) / _span(chart_width)
    return time_range.start + ratio * _span(time_range.end - time_range.start)


def index_to_x(index: float, candle_width: float, candle_spacing: float, margin_left: float) -> float:
    """Centre of the candle slot at *index*."""
    return margin_left + index * (candle_width + candle_spacing) + candle_width / 2


def x_to_index(x: float, candle_width: float, candle_spacing: float, margin_left: float) -> int:
    """Slot under *x*.

    Floors to the slot that contains the pixel, so this snaps to a candle
    rather than inverting ``index_to_x`` exactly.
    """
    return math.floor((x - margin_left) / _span(candle_width + candle_spacing))
