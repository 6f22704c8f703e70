"""Shared helpers for the quant package."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import pandas as pd

from candlechart.schemas.chart_state import OHLCBar


def _safe_float(value: object) -> float | None:
    """Map a raw indicator value to a float, or ``None`` for warm-up / nan / inf."""
    if value is None:
        return None
    try:
        f = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _close_series(bars: Sequence[OHLCBar]) -> pd.Series:
    """Close prices as a float series indexed by bar position."""
    return pd.Series([bar.close for bar in bars], dtype="float64")


def _to_optional(values: Iterable[object]) -> list[float | None]:
    return [_safe_float(v) for v in values]


def _check_period(period: int) -> int:
    if int(period) != period or period < 1:
        raise ValueError(f"period must be a positive integer, got {period!r}")
    return int(period)
