"""Indicator toolkit -- pure computation, no I/O."""

from .indicators import (
    BollingerBands,
    bollinger_bands,
    calculate_bollinger_bands,
    calculate_rsi,
    calculate_sma,
    rsi,
    sma,
)
from .series import DEFAULT_PARAMS, indicator_to_points, resolve_params, series_for

__all__ = [
    # pandas series
    "sma",
    "rsi",
    "bollinger_bands",
    # bar-level
    "BollingerBands",
    "calculate_sma",
    "calculate_rsi",
    "calculate_bollinger_bands",
    # overlays
    "DEFAULT_PARAMS",
    "resolve_params",
    "series_for",
    "indicator_to_points",
]
