from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from candlechart.schemas.chart_state import (
    ChartDimensions,
    ChartSettings,
    CrosshairData,
    IndicatorType,
    OHLCBar,
    PriceRange,
    TechnicalIndicator,
    Theme,
    TimeFrame,
    TimeRange,
    TooltipData,
    ViewportState,
)


class CandleItem(BaseModel):
    time: int  # ms epoch
    open: float
    high: float
    low: float
    close: float
    volume: int


class IndicatorPoint(BaseModel):
    time: int
    value: float


class ChartResponse(BaseModel):
    ok: bool
    ticker: str
    time_frame: TimeFrame
    source: str
    candles: list[CandleItem]
    overlays: dict[str, list[IndicatorPoint]]
    panels: dict[str, list[IndicatorPoint]]


class IndicatorCreate(BaseModel):
    type: IndicatorType
    params: dict[str, float] = {}
    color: str = Field(default="#f5c518", max_length=32)
    name: str = Field(default="", max_length=64)
    visible: bool = True


class SessionCreate(BaseModel):
    symbol: str = Field(min_length=1, max_length=32)
    time_frame: TimeFrame = "1h"
    source: Literal["mock", "yfinance"] | None = None
    width: float | None = Field(default=None, gt=0, le=8192)
    height: float | None = Field(default=None, gt=0, le=8192)
    device_pixel_ratio: float | None = Field(default=None, gt=0, le=4)
    theme: Theme | None = None
    indicators: list[IndicatorCreate] = []


class SessionView(BaseModel):
    id: str
    created_at: datetime
    symbol: str
    time_frame: TimeFrame
    revision: int
    bar_count: int
    last_bar: OHLCBar | None = None
    viewport: ViewportState
    dimensions: ChartDimensions
    settings: ChartSettings
    price_range: PriceRange
    time_range: TimeRange
    indicators: list[TechnicalIndicator]
    crosshair: CrosshairData
    tooltip: TooltipData


class PointerEvent(BaseModel):
    kind: Literal["down", "move", "up", "leave"]
    x: float = 0.0
    y: float = 0.0


class WheelEvent(BaseModel):
    delta_y: float


class ResizeRequest(BaseModel):
    width: float = Field(gt=0, le=8192)
    height: float = Field(gt=0, le=8192)
    device_pixel_ratio: float | None = Field(default=None, gt=0, le=4)


class SettingsPatch(BaseModel):
    candle_width: float | None = Field(default=None, gt=0)
    candle_spacing: float | None = Field(default=None, ge=0)
    grid_lines: bool | None = None
    show_volume: bool | None = None
    theme: Theme | None = None


class TimeFrameRequest(BaseModel):
    time_frame: TimeFrame


class SessionDeleteResponse(BaseModel):
    id: str
    deleted: bool
