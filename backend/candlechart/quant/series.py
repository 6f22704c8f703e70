"""Indicator dispatch and conversion helpers for chart overlays."""

from __future__ import annotations

from typing import Sequence

from candlechart.schemas.chart_state import OHLCBar, TechnicalIndicator

from .indicators import calculate_bollinger_bands, calculate_rsi, calculate_sma

DEFAULT_PARAMS: dict[str, dict[str, float]] = {
    "MA": {"period": 20},
    "RSI": {"period": 14},
    "BOLLINGER": {"period": 20, "multiplier": 2.0},
}


def resolve_params(indicator: TechnicalIndicator) -> dict[str, float]:
    """Indicator params with defaults filled in for anything left unset."""
    params = dict(DEFAULT_PARAMS[indicator.type])
    params.update(indicator.params)
    return params


def series_for(
    indicator: TechnicalIndicator,
    bars: Sequence[OHLCBar],
) -> dict[str, list[float | None]]:
    """Compute the named line(s) of an indicator over *bars*.

    Keys come back in drawing order: Bollinger yields upper, lower, then
    middle so the SMA line sits on top.
    """
    params = resolve_params(indicator)
    period = int(params["period"])

    if indicator.type == "MA":
        return {"value": calculate_sma(bars, period)}
    if indicator.type == "RSI":
        return {"value": calculate_rsi(bars, period)}

    bands = calculate_bollinger_bands(bars, period, float(params["multiplier"]))
    return {"upper": bands.upper, "lower": bands.lower, "middle": bands.middle}


def indicator_to_points(
    timestamps: Sequence[int],
    values: Sequence[float | None],
) -> list[dict]:
    """Convert a timestamp + values pair to ``[{time, value}, ...]``, skipping warm-up."""
    points: list[dict] = []
    for ts, val in zip(timestamps, values):
        if val is None:
            continue
        points.append({"time": int(ts), "value": val})
    return points
