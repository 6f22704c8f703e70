"""Immutable chart state models shared by the store, the renderers and the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TimeFrame = Literal["1m", "5m", "15m", "1h", "4h", "1d", "1w"]
Theme = Literal["light", "dark"]
IndicatorType = Literal["MA", "RSI", "BOLLINGER"]

TIME_FRAME_MS: dict[str, int] = {
    "1m": 60 * 1000,
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "1h": 60 * 60 * 1000,
    "4h": 4 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
    "1w": 7 * 24 * 60 * 60 * 1000,
}

DAY_MS = TIME_FRAME_MS["1d"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class OHLCBar(_Frozen):
    timestamp: int  # ms epoch
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    @model_validator(mode="after")
    def _check_ohlc(self) -> OHLCBar:
        body_low = min(self.open, self.close)
        body_high = max(self.open, self.close)
        if not (self.low <= body_low and body_high <= self.high):
            raise ValueError(
                f"invalid bar at {self.timestamp}: expected low <= open,close <= high "
                f"(o={self.open} h={self.high} l={self.low} c={self.close})"
            )
        return self


class PriceRange(_Frozen):
    min: float = 0.0
    max: float = 100.0
    range: float = 100.0


class TimeRange(_Frozen):
    start: int
    end: int


class ViewportState(_Frozen):
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0
    start_index: int = 0
    end_index: int = 0


class ChartDimensions(_Frozen):
    width: float
    height: float
    chart_width: float
    chart_height: float
    margin_top: float = 20
    margin_bottom: float = 60
    margin_left: float = 60
    margin_right: float = 80

    @classmethod
    def from_size(
        cls,
        width: float,
        height: float,
        *,
        margin_top: float = 20,
        margin_bottom: float = 60,
        margin_left: float = 60,
        margin_right: float = 80,
    ) -> ChartDimensions:
        return cls(
            width=width,
            height=height,
            chart_width=max(0.0, width - margin_left - margin_right),
            chart_height=max(0.0, height - margin_top - margin_bottom),
            margin_top=margin_top,
            margin_bottom=margin_bottom,
            margin_left=margin_left,
            margin_right=margin_right,
        )

    def resized(self, width: float, height: float) -> ChartDimensions:
        return ChartDimensions.from_size(
            width,
            height,
            margin_top=self.margin_top,
            margin_bottom=self.margin_bottom,
            margin_left=self.margin_left,
            margin_right=self.margin_right,
        )

    def contains(self, x: float, y: float) -> bool:
        """True when (x, y) falls inside the plotting pane."""
        return (
            self.margin_left <= x <= self.margin_left + self.chart_width
            and self.margin_top <= y <= self.margin_top + self.chart_height
        )


class ChartSettings(_Frozen):
    candle_width: float = Field(default=8.0, gt=0)
    candle_spacing: float = Field(default=2.0, ge=0)
    grid_lines: bool = True
    show_volume: bool = True
    theme: Theme = "dark"


class TechnicalIndicator(_Frozen):
    id: str
    name: str = ""
    type: IndicatorType
    params: dict[str, float] = Field(default_factory=dict)
    color: str = "#f5c518"
    visible: bool = True

    @field_validator("params")
    @classmethod
    def _check_params(cls, value: dict[str, float]) -> dict[str, float]:
        period = value.get("period")
        if period is not None and (period < 1 or int(period) != period):
            raise ValueError(f"period must be a positive integer, got {period}")
        multiplier = value.get("multiplier")
        if multiplier is not None and multiplier <= 0:
            raise ValueError(f"multiplier must be positive, got {multiplier}")
        return value


class CrosshairData(_Frozen):
    x: float = 0.0
    y: float = 0.0
    timestamp: int = 0
    price: float = 0.0
    visible: bool = False


class TooltipData(_Frozen):
    x: float = 0.0
    y: float = 0.0
    ohlc: OHLCBar | None = None
    visible: bool = False


class ChartState(_Frozen):
    symbol: str = ""
    bars: tuple[OHLCBar, ...] = ()
    last_update: int = 0
    time_frame: TimeFrame = "1h"
    viewport: ViewportState = ViewportState()
    dimensions: ChartDimensions = ChartDimensions.from_size(800, 600)
    price_range: PriceRange = PriceRange()
    time_range: TimeRange = TimeRange(start=0, end=DAY_MS)
    settings: ChartSettings = ChartSettings()
    indicators: tuple[TechnicalIndicator, ...] = ()
    crosshair: CrosshairData = CrosshairData()
    tooltip: TooltipData = TooltipData()
    is_dragging: bool = False
    drag_origin_x: float = 0.0
    drag_start_translate_x: float = 0.0
    revision: int = 0

    def visible_bars(self) -> tuple[OHLCBar, ...]:
        if not self.bars:
            return ()
        return self.bars[self.viewport.start_index : self.viewport.end_index + 1]

    def indicator(self, indicator_id: str) -> TechnicalIndicator | None:
        for item in self.indicators:
            if item.id == indicator_id:
                return item
        return None
