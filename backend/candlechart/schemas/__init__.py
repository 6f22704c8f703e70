from candlechart.schemas.chart_state import (
    ChartDimensions,
    ChartSettings,
    ChartState,
    CrosshairData,
    OHLCBar,
    PriceRange,
    TechnicalIndicator,
    TimeRange,
    TooltipData,
    ViewportState,
)

__all__ = [
    "ChartDimensions",
    "ChartSettings",
    "ChartState",
    "CrosshairData",
    "OHLCBar",
    "PriceRange",
    "TechnicalIndicator",
    "TimeRange",
    "TooltipData",
    "ViewportState",
]
