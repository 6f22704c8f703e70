"""Candlestick chart rendering: coordinate mapping, viewport math, painting."""

from .coords import index_to_x, price_to_y, timestamp_to_x, x_to_index, x_to_timestamp, y_to_price
from .viewport import (
    calculate_price_range,
    calculate_time_range,
    calculate_visible_range,
    intersect_with_data,
)
from .labels import format_price, format_timestamp, generate_price_labels, generate_time_labels
from .surface import Surface, compose
from .renderer import THEMES, ChartRenderer
from .overlay import CrosshairRenderer

__all__ = [
    # coords
    "price_to_y",
    "y_to_price",
    "timestamp_to_x",
    "x_to_timestamp",
    "index_to_x",
    "x_to_index",
    # viewport
    "calculate_visible_range",
    "intersect_with_data",
    "calculate_price_range",
    "calculate_time_range",
    # labels
    "format_price",
    "format_timestamp",
    "generate_price_labels",
    "generate_time_labels",
    # painting
    "Surface",
    "compose",
    "THEMES",
    "ChartRenderer",
    "CrosshairRenderer",
]
