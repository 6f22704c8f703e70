"""Axis label generation and price/time formatting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from candlechart.schemas.chart_state import DAY_MS, PriceRange, TimeRange

PRICE_LABEL_SPACING = 50
TIME_LABEL_SPACING = 100


@dataclass(frozen=True)
class PriceLabel:
    price: float
    label: str
    y: float  # from the top of the chart pane


@dataclass(frozen=True)
class TimeLabel:
    timestamp: float
    label: str
    x: float  # from the left of the chart pane


def _utc(timestamp_ms: float) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def format_price(price: float) -> str:
    if price >= 1000:
        return f"{price:.2f}"
    if price >= 1:
        return f"{price:.3f}"
    return f"{price:.6f}"


def format_timestamp(timestamp_ms: float, time_frame: str) -> str:
    dt = _utc(timestamp_ms)
    if time_frame in ("1m", "5m", "15m"):
        return dt.strftime("%H:%M")
    if time_frame in ("1h", "4h"):
        return f"{dt.strftime('%b')} {dt.day} {dt.strftime('%H')}"
    if time_frame in ("1d", "1w"):
        return f"{dt.strftime('%b')} {dt.day}"
    return dt.strftime("%Y-%m-%d")


def _time_label(timestamp_ms: float, intraday: bool) -> str:
    dt = _utc(timestamp_ms)
    label = f"{dt.strftime('%b')} {dt.day}"
    if intraday:
        label += f" {dt.strftime('%H:%M')}"
    return label


def generate_price_labels(price_range: PriceRange, chart_height: float) -> list[PriceLabel]:
    """Evenly spaced price labels, roughly one per 50px, lowest price at the bottom."""
    count = max(1, math.floor(chart_height / PRICE_LABEL_SPACING))
    interval = price_range.range / count

    labels: list[PriceLabel] = []
    for i in range(count + 1):
        price = price_range.min + i * interval
        y = chart_height - (i / count) * chart_height
        labels.append(PriceLabel(price=price, label=format_price(price), y=y))
    return labels


def generate_time_labels(time_range: TimeRange, chart_width: float) -> list[TimeLabel]:
    """Evenly spaced time labels, roughly one per 100px."""
    duration = time_range.end - time_range.start
    count = max(1, math.floor(chart_width / TIME_LABEL_SPACING))
    interval = duration / count
    intraday = duration < DAY_MS

    labels: list[TimeLabel] = []
    for i in range(count + 1):
        timestamp = time_range.start + i * interval
        x = (i / count) * chart_width
        labels.append(TimeLabel(timestamp=timestamp, label=_time_label(timestamp, intraday), x=x))
    return labels
